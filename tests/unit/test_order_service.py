"""OrderService: submission, staff status flow, tracking, reviews, listing."""

import pytest

from src.ps_common.enums import (
    ConversationStatus,
    NotificationKind,
    OrderStatus,
    PaymentPath,
    PaymentStatus,
    SenderRole,
)
from src.ps_common.errors import (
    InsufficientCreditsError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderNotReviewableError,
)
from src.ps_conversation.domain.models import Viewer
from src.ps_order.application.schemas import SubmitOrderRequest
from fakes import World, make_order


class TestSubmit:
    async def test_credit_payment_debits_ledger(self) -> None:
        w = World()
        await w.credits.adjust(w.db, "user-1", 20000, "Top-up")

        result = await w.order_service.submit_order(
            w.db,
            "user-1",
            SubmitOrderRequest(file_name="bracket.stl", price=12500, payment_path=PaymentPath.CREDITS),
        )

        assert result.order.payment_status == PaymentStatus.PAID
        assert result.order.paid_amount == 12500
        assert result.redirect is None
        assert w.ledger.balance_of("user-1") == 7500
        assert w.gateway.payments == []

    async def test_credit_payment_rejected_without_balance(self) -> None:
        w = World()
        with pytest.raises(InsufficientCreditsError):
            await w.order_service.submit_order(
                w.db,
                "user-1",
                SubmitOrderRequest(file_name="bracket.stl", price=12500, payment_path=PaymentPath.CREDITS),
            )
        assert w.ledger.entries == []
        w.db.rollback.assert_awaited()

    async def test_gateway_submission_returns_redirect(self) -> None:
        w = World()

        result = await w.order_service.submit_order(
            w.db, "user-1", SubmitOrderRequest(file_name="vase.stl", price=4000, project_id="P1")
        )

        stored = w.order(result.order.id)
        assert stored.payment_status == PaymentStatus.ON_HOLD
        assert stored.project_id == "P1"
        assert result.redirect.redirect_url.endswith(result.order.id)
        assert result.warnings == []

    async def test_gateway_outage_keeps_order(self) -> None:
        w = World(gateway_available=False)

        result = await w.order_service.submit_order(
            w.db, "user-1", SubmitOrderRequest(file_name="vase.stl", price=4000)
        )

        assert result.redirect is None
        assert len(result.warnings) == 1
        assert result.order.id in w.orders.rows


class TestStatusFlow:
    async def test_main_line_progression_notifies(self) -> None:
        w = World(make_order("o-1"))
        for target in (OrderStatus.IN_QUEUE, OrderStatus.PRINTING, OrderStatus.FINISHED):
            await w.order_service.update_status(w.db, "o-1", target)

        assert w.order("o-1").status == OrderStatus.FINISHED
        assert w.notifier.kinds() == [NotificationKind.ORDER_STATUS_CHANGE] * 3

    async def test_delivered_cannot_go_back_to_printing(self) -> None:
        w = World(make_order("o-1", status=OrderStatus.DELIVERED))
        with pytest.raises(InvalidTransitionError):
            await w.order_service.update_status(w.db, "o-1", OrderStatus.PRINTING)
        assert w.order("o-1").status == OrderStatus.DELIVERED
        assert w.notifier.sent == []

    async def test_suspending_paid_order_is_rejected(self) -> None:
        w = World(make_order("o-1"))
        with pytest.raises(InvalidTransitionError):
            await w.order_service.update_status(w.db, "o-1", OrderStatus.SUSPENDED)

    async def test_on_hold_returns_only_to_previous(self) -> None:
        w = World(make_order("o-1", status=OrderStatus.PRINTING))
        await w.order_service.update_status(w.db, "o-1", OrderStatus.ON_HOLD)
        assert w.order("o-1").previous_status == OrderStatus.PRINTING

        with pytest.raises(InvalidTransitionError):
            await w.order_service.update_status(w.db, "o-1", OrderStatus.SUBMITTED)
        order = await w.order_service.update_status(w.db, "o-1", OrderStatus.PRINTING)

        assert order.status == OrderStatus.PRINTING
        assert order.previous_status is None

    async def test_delivery_closes_conversation(self) -> None:
        w = World(make_order("o-1", status=OrderStatus.FINISHED))
        view = await w.conversations.get_or_create(w.db, Viewer("user-1", SenderRole.CUSTOMER), "o-1")

        await w.order_service.update_status(w.db, "o-1", OrderStatus.DELIVERED)

        assert w.conv_repo.conversations[view.id].status == ConversationStatus.CLOSED
        notice = w.conv_repo.messages[-1]
        assert notice.sender_role == SenderRole.SYSTEM
        assert "delivered" in notice.body


class TestTrackingAndReview:
    async def test_tracking_code_is_stored(self) -> None:
        w = World(make_order("o-1", status=OrderStatus.FINISHED))
        order = await w.order_service.update_tracking(w.db, "o-1", "INPOST-123")
        assert order.tracking_code == "INPOST-123"
        assert w.order("o-1").version == 1

    async def test_review_after_delivery(self) -> None:
        w = World(make_order("o-1", status=OrderStatus.DELIVERED))
        order = await w.order_service.add_review(w.db, "user-1", "o-1", "Crisp layers")
        assert order.review == "Crisp layers"

    async def test_review_before_finish_rejected(self) -> None:
        w = World(make_order("o-1", status=OrderStatus.PRINTING))
        with pytest.raises(OrderNotReviewableError):
            await w.order_service.add_review(w.db, "user-1", "o-1", "Too early")

    async def test_review_of_someone_elses_order(self) -> None:
        w = World(make_order("o-1", status=OrderStatus.DELIVERED))
        with pytest.raises(OrderNotFoundError):
            await w.order_service.add_review(w.db, "user-2", "o-1", "Nope")


class TestListing:
    async def test_cursor_pagination(self) -> None:
        w = World(make_order("o-1"), make_order("o-2"), make_order("o-3"))

        first = await w.order_service.list_orders(w.db, "user-1", limit=2)
        second = await w.order_service.list_orders(w.db, "user-1", cursor=first.next_cursor, limit=2)

        assert [o.id for o in first.items] == ["o-3", "o-2"]
        assert first.has_more is True
        assert [o.id for o in second.items] == ["o-1"]
        assert second.has_more is False
        assert second.next_cursor is None

    async def test_customer_sees_only_own_orders(self) -> None:
        w = World(make_order("o-1"), make_order("o-2", user_id="user-2"))
        page = await w.order_service.list_orders(w.db, "user-2")
        assert [o.id for o in page.items] == ["o-2"]

    async def test_project_aggregate_after_member_cancellation(self) -> None:
        w = World(
            make_order("o-1", 5000, project_id="P1"),
            make_order("o-2", 7500, project_id="P1"),
            make_order("o-3", 2500, project_id="P1"),
        )
        await w.settlement.request_cancellation(w.db, "o-2")

        summary = await w.order_service.aggregate_project(w.db, "P1", "user-1")

        assert summary.member_count == 2
        assert summary.total_price == 7500
        assert summary.suspended_order_ids == ["o-2"]
