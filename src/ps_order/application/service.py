"""OrderService — order submission, staff status flow, tracking, reviews, projects.

Transaction boundary: each public method commits once for the order row.
Conversation closing and notifications run afterwards as separate steps; a
failure there never undoes the order change.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_account.application.service import CreditApplicationService
from src.ps_common.enums import NotificationKind, OrderStatus, PaymentPath, PaymentStatus
from src.ps_common.errors import (
    ConcurrentModificationError,
    ExternalServiceUnavailableError,
    OrderNotFoundError,
    OrderNotReviewableError,
)
from src.ps_common.id_generator import generate_id, order_number
from src.ps_common.notifier import NotifierProtocol, WebhookNotifier
from src.ps_conversation.application.service import ConversationService
from src.ps_order.application.schemas import (
    OrderListResponse,
    OrderResponse,
    SubmitOrderRequest,
    cursor_decode,
    cursor_encode,
)
from src.ps_order.domain.models import Order, ProjectSummary
from src.ps_order.domain.project import aggregate_project
from src.ps_order.domain.repository import OrderRepositoryProtocol
from src.ps_order.domain.state_machine import (
    apply_status,
    check_consistency,
    check_payment_transition,
)
from src.ps_order.infrastructure.persistence import OrderRepository
from src.ps_settlement.infrastructure.payment_gateway import (
    HttpPaymentGateway,
    PaymentGatewayProtocol,
    PaymentRedirect,
)

logger = logging.getLogger(__name__)

_REVIEWABLE = frozenset({OrderStatus.FINISHED, OrderStatus.DELIVERED})


@dataclass
class SubmitResult:
    order: Order
    redirect: PaymentRedirect | None = None
    warnings: list[str] = field(default_factory=list)


async def update_or_conflict(repo: OrderRepositoryProtocol, order: Order, db: AsyncSession) -> None:
    """Version-guarded write; a lost race surfaces as ConcurrentModificationError."""
    if not await repo.update(order, db):
        raise ConcurrentModificationError(order.id)


def order_label(order: Order) -> str:
    return order_number(order.id, order.created_at)


class OrderService:
    def __init__(
        self,
        repo: OrderRepositoryProtocol | None = None,
        credits: CreditApplicationService | None = None,
        conversations: ConversationService | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        notifier: NotifierProtocol | None = None,
    ) -> None:
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._credits = credits or CreditApplicationService()
        self._conversations = conversations or ConversationService(order_repo=self._repo)
        self._gateway: PaymentGatewayProtocol = gateway or HttpPaymentGateway()
        self._notifier: NotifierProtocol = notifier or WebhookNotifier()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit_order(
        self, db: AsyncSession, user_id: str, req: SubmitOrderRequest
    ) -> SubmitResult:
        order = Order(
            id=generate_id(),
            user_id=user_id,
            file_name=req.file_name,
            price=req.price,
            print_parameters=req.print_parameters,
            project_id=req.project_id,
            project_name=req.project_name,
            shipping_method=req.shipping_method.value,
            shipping_address=req.shipping_address,
        )

        if req.payment_path == PaymentPath.CREDITS:
            check_payment_transition(order.payment_status, PaymentStatus.PAID)
            order.payment_status = PaymentStatus.PAID
            order.paid_amount = order.price
            # Order insert and ledger debit share one commit (pay_order commits)
            try:
                await self._repo.save(order, db)
            except Exception:
                await db.rollback()
                raise
            await self._credits.pay_order(db, user_id, order.price, order.id)
            logger.info("Order %s submitted and paid from credits (%d)", order.id, order.price)
            return SubmitResult(order=order)

        try:
            await self._repo.save(order, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s submitted, awaiting gateway payment (%d)", order.id, order.price)

        result = SubmitResult(order=order)
        try:
            result.redirect = await self._gateway.create_payment(
                order.id, order.price, f"Print order {order_label(order)}"
            )
        except ExternalServiceUnavailableError as exc:
            logger.warning("No payment redirect for order %s: %s", order.id, exc.message)
            result.warnings.append(exc.message)
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(
        self, db: AsyncSession, order_id: str, user_id: str | None = None
    ) -> Order:
        """Load an order; with ``user_id`` set, other customers' orders read as missing."""
        order = await self._repo.get_by_id(order_id, db)
        if order is None or (user_id is not None and order.user_id != user_id):
            raise OrderNotFoundError(order_id)
        return order

    async def list_orders(
        self,
        db: AsyncSession,
        user_id: str | None,
        status: str | None = None,
        project_id: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> OrderListResponse:
        orders = await self._repo.list_orders(
            user_id, status, project_id, limit + 1, cursor_decode(cursor), db
        )
        has_more = len(orders) > limit
        page = orders[:limit]
        return OrderListResponse(
            items=[OrderResponse.from_domain(o) for o in page],
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )

    async def aggregate_project(
        self, db: AsyncSession, project_id: str, user_id: str | None = None
    ) -> ProjectSummary:
        orders = await self._repo.list_by_project(project_id, db)
        if user_id is not None:
            orders = [o for o in orders if o.user_id == user_id]
        return aggregate_project(project_id, orders)

    # ------------------------------------------------------------------
    # Staff / customer mutations
    # ------------------------------------------------------------------

    async def update_status(
        self, db: AsyncSession, order_id: str, target: OrderStatus
    ) -> Order:
        """Staff-driven status change, validated against the transition table."""
        order = await self.get_order(db, order_id)
        previous = apply_status(order, target)
        check_consistency(order.status, order.payment_status)
        try:
            await update_or_conflict(self._repo, order, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s status %s -> %s", order.id, previous.value, target.value)
        await self.after_status_change(db, order, previous)
        return order

    async def after_status_change(
        self, db: AsyncSession, order: Order, previous: OrderStatus
    ) -> None:
        await self._notifier.notify(
            NotificationKind.ORDER_STATUS_CHANGE,
            order.user_id,
            order.id,
            {"from": previous.value, "to": order.status.value},
        )
        if order.is_terminal:
            await self._conversations.close_for_order(
                db,
                order.id,
                f"Order {order_label(order)} is {order.status.value}. "
                "This conversation is now closed.",
            )

    async def update_tracking(self, db: AsyncSession, order_id: str, tracking_code: str) -> Order:
        order = await self.get_order(db, order_id)
        order.tracking_code = tracking_code
        try:
            await update_or_conflict(self._repo, order, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return order

    async def add_review(
        self, db: AsyncSession, user_id: str, order_id: str, review: str
    ) -> Order:
        order = await self.get_order(db, order_id, user_id)
        if order.status not in _REVIEWABLE:
            raise OrderNotReviewableError(order.id, order.status.value)
        order.review = review
        try:
            await update_or_conflict(self._repo, order, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return order
