"""SettlementService — edits, cancellations, refunds and payment confirmations.

A refund touches three records that cannot share one transaction across
services: the credit ledger, the order, and the support conversation. They are
always written in that order, and each step checks whether it already happened
before writing, so a settlement interrupted at any point can simply be retried
with the same staged command.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_account.application.service import CreditApplicationService
from src.ps_account.domain.models import LedgerEntry
from src.ps_common.datetime_utils import utc_now
from src.ps_common.enums import (
    ConversationStatus,
    NotificationKind,
    OrderStatus,
    PaymentStatus,
    RefundMethod,
    RefundReason,
    StagedCommandKind,
)
from src.ps_common.errors import (
    AppError,
    ExternalServiceUnavailableError,
    InvalidTransitionError,
    ProjectNotFoundError,
)
from src.ps_common.id_generator import generate_id
from src.ps_common.money import to_display
from src.ps_common.notifier import NotifierProtocol, WebhookNotifier
from src.ps_conversation.application.service import ConversationService
from src.ps_order.application.service import OrderService, order_label, update_or_conflict
from src.ps_order.domain.models import Order
from src.ps_order.domain.repository import OrderRepositoryProtocol
from src.ps_order.domain.state_machine import apply_status, check_consistency
from src.ps_order.infrastructure.persistence import OrderRepository
from src.ps_settlement.domain.refunds import (
    amount_due,
    cancellation_refund,
    check_refund_method,
    edit_refund,
    move_payment,
    move_refund,
    payable_refund,
    settled_payment_status,
)
from src.ps_settlement.domain.repository import PaymentConfirmationRepositoryProtocol
from src.ps_settlement.domain.staged_command import StagedCommand, resolve_staged_command
from src.ps_settlement.infrastructure.payment_gateway import (
    HttpPaymentGateway,
    PaymentGatewayProtocol,
    PaymentRedirect,
)
from src.ps_settlement.infrastructure.persistence import PaymentConfirmationRepository

logger = logging.getLogger(__name__)

_BLOCKED_FOR_EDIT = frozenset({PaymentStatus.REFUNDING, PaymentStatus.REFUNDED})
_CONFIRMED_EXTERNALLY = frozenset({RefundMethod.BANK.value, RefundMethod.ORIGINAL.value})


def _awaits_confirmation(order: Order) -> bool:
    """True once a bank or original refund is settled and only the money is outstanding."""
    return (
        order.pending_update_id is None
        and order.settled_refund_id is not None
        and order.refund_method in _CONFIRMED_EXTERNALLY
    )


@dataclass
class EditResult:
    order: Order
    refund_amount: int = 0
    amount_due: int = 0
    pending_update: dict[str, Any] | None = None
    redirect: PaymentRedirect | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class CancelResult:
    order: Order
    refund_amount: int = 0
    pending_update: dict[str, Any] | None = None


@dataclass
class RefundReceipt:
    refund_id: str
    order_id: str
    method: RefundMethod
    amount: int
    payment_status: PaymentStatus
    ledger_entry: LedgerEntry | None = None
    already_settled: bool = False
    conversation_updated: bool = False


@dataclass
class ItemFailure:
    order_id: str
    code: int
    message: str


@dataclass
class ProjectBatchResult:
    """Per-member outcome of a project-wide operation.

    Members are processed independently: a failure is recorded here and never
    rolls back siblings that already succeeded.
    """

    project_id: str
    succeeded: list[str] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)
    total_refund: int = 0
    pending_updates: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def partial_failure(self) -> bool:
        return bool(self.failures) and bool(self.succeeded)


class SettlementService:
    def __init__(
        self,
        orders: OrderRepositoryProtocol | None = None,
        credits: CreditApplicationService | None = None,
        conversations: ConversationService | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        notifier: NotifierProtocol | None = None,
        confirmations: PaymentConfirmationRepositoryProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._credits = credits or CreditApplicationService()
        self._conversations = conversations or ConversationService(order_repo=self._orders)
        self._gateway: PaymentGatewayProtocol = gateway or HttpPaymentGateway()
        self._notifier: NotifierProtocol = notifier or WebhookNotifier()
        self._confirmations: PaymentConfirmationRepositoryProtocol = (
            confirmations or PaymentConfirmationRepository()
        )
        self._clock = clock
        self._order_service = OrderService(
            self._orders, self._credits, self._conversations, self._gateway, self._notifier
        )

    async def _write(self, db: AsyncSession, order: Order) -> None:
        try:
            await update_or_conflict(self._orders, order, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    def _stage(
        self,
        order: Order,
        kind: StagedCommandKind,
        refund: int,
        previous_status: OrderStatus | None = None,
        **extra: Any,
    ) -> StagedCommand:
        command = StagedCommand(
            id=generate_id(),
            order_id=order.id,
            kind=kind,
            refund_amount=refund,
            previous_status=previous_status or order.previous_status,
            staged_at=self._clock(),
            **extra,
        )
        # Single slot: whatever was staged before is superseded
        if order.pending_update_id is not None:
            logger.info("Order %s: staged %s superseded by %s", order.id, order.pending_update_id, command.id)
        order.pending_update_id = command.id
        order.pending_update = command.to_payload()
        return command

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    async def request_edit(
        self,
        db: AsyncSession,
        order_id: str,
        new_price: int,
        parameters: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> EditResult:
        """Re-price an order.

        A lower price stages a refund of the difference and parks the order
        on_hold until it is settled. Anything else applies at once; a higher
        price reports the amount still due.
        """
        order = await self._order_service.get_order(db, order_id, user_id)
        if order.is_terminal:
            raise InvalidTransitionError(
                "status", order.status.value, OrderStatus.ON_HOLD.value, "order can no longer be edited"
            )
        if order.payment_status in _BLOCKED_FOR_EDIT:
            raise InvalidTransitionError(
                "payment_status",
                order.payment_status.value,
                PaymentStatus.ON_HOLD.value,
                "a refund is already in progress or done",
            )

        if new_price < order.price:
            return await self._stage_edit_refund(db, order, new_price, parameters)
        return await self._apply_edit(db, order, new_price, parameters)

    async def _stage_edit_refund(
        self, db: AsyncSession, order: Order, new_price: int, parameters: dict[str, Any] | None
    ) -> EditResult:
        refund = edit_refund(order, new_price)
        if order.status != OrderStatus.ON_HOLD:
            apply_status(order, OrderStatus.ON_HOLD)
        move_payment(order, PaymentStatus.ON_HOLD)
        command = self._stage(
            order, StagedCommandKind.EDIT, refund, new_price=new_price, parameters=parameters
        )
        order.refund_reason = RefundReason.PRICE_REDUCTION.value
        await self._write(db, order)
        logger.info(
            "Order %s edit staged (%s): price %d -> %d, refund %d",
            order.id, command.id, order.price, new_price, refund,
        )
        return EditResult(order=order, refund_amount=refund, pending_update=order.pending_update)

    async def _apply_edit(
        self, db: AsyncSession, order: Order, new_price: int, parameters: dict[str, Any] | None
    ) -> EditResult:
        superseded = order.pending_update
        due = amount_due(order, new_price)
        order.price = new_price
        if parameters is not None:
            order.print_parameters = parameters
        if superseded is not None:
            order.pending_update_id = None
            order.pending_update = None
            order.refund_reason = None
            if order.status == OrderStatus.ON_HOLD and order.previous_status is not None:
                apply_status(order, order.previous_status)
        move_payment(order, settled_payment_status(order))
        await self._write(db, order)
        logger.info("Order %s edited in place: price %d, due %d", order.id, new_price, due)

        result = EditResult(order=order, amount_due=due)
        if due > 0:
            try:
                result.redirect = await self._gateway.create_payment(
                    order.id, due, f"Surcharge for order {order_label(order)}"
                )
            except ExternalServiceUnavailableError as exc:
                logger.warning("No payment redirect for order %s surcharge: %s", order.id, exc.message)
                result.warnings.append(exc.message)
        return result

    # ------------------------------------------------------------------
    # Cancellation and customer refund requests
    # ------------------------------------------------------------------

    async def request_cancellation(
        self,
        db: AsyncSession,
        order_id: str,
        user_id: str | None = None,
        reason: RefundReason = RefundReason.CANCELLATION,
    ) -> CancelResult:
        """Suspend the order and stage a refund of everything paid.

        An order whose edit refund already settled keeps ``refunded``; its
        remaining balance is staged the same way and settles as credit.
        """
        order = await self._order_service.get_order(db, order_id, user_id)
        refund = cancellation_refund(order)
        previous = apply_status(order, OrderStatus.SUSPENDED)
        if refund > 0:
            if order.payment_status != PaymentStatus.REFUNDED:
                move_payment(order, PaymentStatus.REFUNDING)
            self._stage(order, StagedCommandKind.CANCEL, refund, previous_status=previous)
            order.refund_reason = reason.value
        else:
            order.pending_update_id = None
            order.pending_update = None
        check_consistency(order.status, order.payment_status)
        await self._write(db, order)
        logger.info("Order %s cancelled from %s, refund %d", order.id, previous.value, refund)
        await self._order_service.after_status_change(db, order, previous)
        return CancelResult(order=order, refund_amount=refund, pending_update=order.pending_update)

    async def request_refund(
        self, db: AsyncSession, user_id: str, order_id: str, reason: str | None = None
    ) -> Order:
        order = await self._order_service.get_order(db, order_id, user_id)
        previous = apply_status(order, OrderStatus.REFUND_REQUESTED)
        order.refund_reason = RefundReason.CUSTOMER_REQUEST.value
        await self._write(db, order)
        logger.info("Order %s refund requested (was %s)", order.id, previous.value)
        await self._notifier.notify(
            NotificationKind.REFUND_REQUESTED,
            order.user_id,
            order.id,
            {"reason": reason, "paid_amount": order.paid_amount},
        )
        return order

    async def resolve_refund_request(
        self, db: AsyncSession, order_id: str, approve: bool
    ) -> CancelResult:
        """Staff decision: approve cancels with a full refund, reject restores the order."""
        if approve:
            return await self.request_cancellation(
                db, order_id, reason=RefundReason.CUSTOMER_REQUEST
            )

        order = await self._order_service.get_order(db, order_id)
        if order.status != OrderStatus.REFUND_REQUESTED:
            raise InvalidTransitionError(
                "status", order.status.value, "previous", "no refund request to reject"
            )
        if order.previous_status is None:
            raise InvalidTransitionError(
                "status", order.status.value, "previous", "no status to return to"
            )
        previous = apply_status(order, order.previous_status)
        order.refund_reason = None
        await self._write(db, order)
        logger.info("Order %s refund request rejected, back to %s", order.id, order.status.value)
        await self._order_service.after_status_change(db, order, previous)
        return CancelResult(order=order)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def settle_refund(
        self,
        db: AsyncSession,
        order_id: str,
        method: RefundMethod,
        bank_details: str | None,
        pending_update: Any,
        user_id: str | None = None,
    ) -> RefundReceipt:
        order = await self._order_service.get_order(db, order_id, user_id)
        command = resolve_staged_command(order, pending_update)
        already = order.settled_refund_id == command.id
        settled: Order | None = None
        if already:
            # A retry finishes with the method and amount recorded the first time
            if order.refund_method:
                method = RefundMethod(order.refund_method)
                payable = min(command.refund_amount, order.refund_amount or 0)
            else:
                payable = 0
        else:
            kept = command.new_price if command.kind == StagedCommandKind.EDIT else 0
            payable = payable_refund(order, command.refund_amount, kept or 0)
            if payable > 0:
                check_refund_method(method, bank_details)
            # Step 2 is validated on a copy before step 1 runs
            settled = replace(order)
            self._apply_settlement(settled, command, method, bank_details, payable)

        # Step 1: money leaves the shop
        entry: LedgerEntry | None = None
        if method == RefundMethod.CREDIT and payable > 0:
            entry = await self._credits.credit_refund(db, order.user_id, payable, command.id, order.id)
        elif method == RefundMethod.ORIGINAL and not already and payable > 0:
            await self._gateway.request_refund(order.id, payable, command.id)

        # Step 2: the order records the settlement
        if settled is not None:
            await self._write(db, settled)
            order = settled
            logger.info(
                "Order %s refund %s settled via %s: %d of %d quoted, payment %s",
                order.id, command.id, method.value, payable, command.refund_amount,
                order.payment_status.value,
            )

        # Step 3: the conversation follows once the money is back
        conversation_updated = False
        if payable > 0 and order.payment_status == PaymentStatus.REFUNDED:
            conversation_updated = await self._finish_refund(
                db, order, payable, method, notify=not already
            )

        return RefundReceipt(
            refund_id=command.id,
            order_id=order.id,
            method=method,
            amount=payable,
            payment_status=order.payment_status,
            ledger_entry=entry,
            already_settled=already,
            conversation_updated=conversation_updated,
        )

    def _apply_settlement(
        self,
        order: Order,
        command: StagedCommand,
        method: RefundMethod,
        bank_details: str | None,
        payable: int,
    ) -> None:
        if command.kind == StagedCommandKind.EDIT:
            order.price = command.new_price if command.new_price is not None else order.price
            if command.parameters is not None:
                order.print_parameters = command.parameters
            if order.status == OrderStatus.ON_HOLD and order.previous_status is not None:
                apply_status(order, order.previous_status)
        if payable > 0:
            move_refund(order, method)
            order.paid_amount -= payable
            order.refund_amount = (order.refund_amount or 0) + payable
            order.refund_method = method.value
            order.refund_bank_details = bank_details if method == RefundMethod.BANK else None
        else:
            # Nothing was paid above the new price: the edit only lowers what is due
            move_payment(order, settled_payment_status(order))
        order.settled_refund_id = command.id
        order.pending_update_id = None
        order.pending_update = None
        check_consistency(order.status, order.payment_status)

    async def _finish_refund(
        self, db: AsyncSession, order: Order, amount: int, method: RefundMethod | None, notify: bool
    ) -> bool:
        target = ConversationStatus.CLOSED if order.is_terminal else ConversationStatus.RESOLVED
        via = f" via {method.value}" if method else ""
        updated = await self._conversations.apply_order_outcome(
            db,
            order.id,
            target,
            f"Refund of {to_display(amount)} for order {order_label(order)} was processed{via}.",
        )
        if notify:
            await self._notifier.notify(
                NotificationKind.REFUND_PROCESSED,
                order.user_id,
                order.id,
                {"amount": amount, "method": method.value if method else None},
            )
        return updated

    # ------------------------------------------------------------------
    # Payment gateway webhook
    # ------------------------------------------------------------------

    async def on_payment_confirmed(
        self, db: AsyncSession, order_id: str, amount: int, transaction_id: str
    ) -> tuple[Order, bool]:
        """Apply a gateway confirmation once; returns (order, applied)."""
        order = await self._order_service.get_order(db, order_id)
        outcome: NotificationKind | None = None
        try:
            if not await self._confirmations.record(transaction_id, order_id, amount, db):
                await db.rollback()
                logger.info("Payment confirmation %s for order %s already applied", transaction_id, order_id)
                return order, False

            if order.payment_status == PaymentStatus.REFUNDING and _awaits_confirmation(order):
                move_payment(order, PaymentStatus.REFUNDED)
                outcome = NotificationKind.REFUND_PROCESSED
            elif order.payment_status == PaymentStatus.ON_HOLD:
                order.paid_amount += amount
                if order.status == OrderStatus.SUSPENDED:
                    logger.warning(
                        "Order %s is suspended but received payment %d, needs manual refund",
                        order.id, amount,
                    )
                elif order.pending_update_id is None and order.paid_amount >= order.price:
                    move_payment(order, PaymentStatus.PAID)
                outcome = NotificationKind.PAYMENT_CONFIRMED
            else:
                logger.warning(
                    "Payment confirmation %s ignored for order %s in payment status %s",
                    transaction_id, order.id, order.payment_status.value,
                )

            if outcome is not None:
                await update_or_conflict(self._orders, order, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if outcome == NotificationKind.REFUND_PROCESSED:
            method = RefundMethod(order.refund_method) if order.refund_method else None
            await self._finish_refund(db, order, amount, method, notify=True)
        elif outcome == NotificationKind.PAYMENT_CONFIRMED:
            await self._notifier.notify(
                outcome, order.user_id, order.id, {"amount": amount, "paid_amount": order.paid_amount}
            )
        return order, outcome is not None

    # ------------------------------------------------------------------
    # Project-wide operations
    # ------------------------------------------------------------------

    async def _project_members(
        self, db: AsyncSession, project_id: str, user_id: str | None
    ) -> dict[str, Order]:
        members = await self._orders.list_by_project(project_id, db)
        if user_id is not None:
            members = [o for o in members if o.user_id == user_id]
        if not members:
            raise ProjectNotFoundError(project_id)
        return {o.id: o for o in members}

    async def _for_each(
        self,
        result: ProjectBatchResult,
        order_ids: list[str],
        members: dict[str, Order],
        step: Callable[[str], Awaitable[tuple[int, dict[str, Any] | None]]],
    ) -> ProjectBatchResult:
        for order_id in order_ids:
            if order_id not in members:
                result.failures.append(
                    ItemFailure(order_id, 4004, f"Order {order_id} is not part of project {result.project_id}")
                )
                continue
            try:
                refund, staged = await step(order_id)
            except AppError as exc:
                logger.warning("Project %s: order %s failed: %s", result.project_id, order_id, exc.message)
                result.failures.append(ItemFailure(order_id, exc.code, exc.message))
                continue
            result.succeeded.append(order_id)
            result.total_refund += refund
            if staged is not None:
                result.pending_updates[order_id] = staged
        if result.failures:
            logger.warning(
                "Project %s: %d succeeded, %d failed",
                result.project_id, result.succeeded_count, result.failed_count,
            )
        return result

    async def request_project_edit(
        self,
        db: AsyncSession,
        project_id: str,
        edits: list[tuple[str, int, dict[str, Any] | None]],
        user_id: str | None = None,
    ) -> ProjectBatchResult:
        """Apply (order_id, new_price, parameters) edits member by member."""
        members = await self._project_members(db, project_id, user_id)
        by_order = {order_id: (price, params) for order_id, price, params in edits}

        async def step(order_id: str) -> tuple[int, dict[str, Any] | None]:
            price, params = by_order[order_id]
            edit = await self.request_edit(db, order_id, price, params, user_id)
            return edit.refund_amount, edit.pending_update

        return await self._for_each(ProjectBatchResult(project_id), list(by_order), members, step)

    async def request_project_cancellation(
        self, db: AsyncSession, project_id: str, user_id: str | None = None
    ) -> ProjectBatchResult:
        """Cancel every member that is still cancellable; suspended ones are skipped."""
        members = await self._project_members(db, project_id, user_id)
        targets = [o.id for o in members.values() if o.status != OrderStatus.SUSPENDED]

        async def step(order_id: str) -> tuple[int, dict[str, Any] | None]:
            cancel = await self.request_cancellation(db, order_id, user_id)
            return cancel.refund_amount, cancel.pending_update

        return await self._for_each(ProjectBatchResult(project_id), targets, members, step)

    async def settle_project_refund(
        self,
        db: AsyncSession,
        project_id: str,
        method: RefundMethod,
        bank_details: str | None,
        pending_updates: dict[str, Any],
        user_id: str | None = None,
    ) -> ProjectBatchResult:
        members = await self._project_members(db, project_id, user_id)

        async def step(order_id: str) -> tuple[int, dict[str, Any] | None]:
            receipt = await self.settle_refund(
                db, order_id, method, bank_details, pending_updates[order_id], user_id
            )
            return receipt.amount, None

        return await self._for_each(
            ProjectBatchResult(project_id), list(pending_updates), members, step
        )
