"""Tests for ps_common.enums — all enum values must match DB CHECK constraints."""

from src.ps_common.enums import (
    ConversationStatus,
    LedgerEntryType,
    OrderStatus,
    PaymentStatus,
    RefundMethod,
    SenderRole,
)


class TestAllEnumsAreStr:
    def test_order_status_is_str(self) -> None:
        assert isinstance(OrderStatus.ON_HOLD, str)
        assert OrderStatus.ON_HOLD == "on_hold"


class TestValues:
    def test_order_status(self) -> None:
        assert {s.value for s in OrderStatus} == {
            "submitted", "in_queue", "printing", "finished", "delivered",
            "on_hold", "suspended", "refund_requested",
        }

    def test_payment_status(self) -> None:
        assert {s.value for s in PaymentStatus} == {"on_hold", "paid", "refunding", "refunded"}

    def test_refund_method(self) -> None:
        assert {m.value for m in RefundMethod} == {"credit", "bank", "original"}

    def test_conversation_status(self) -> None:
        assert {s.value for s in ConversationStatus} == {"open", "in_progress", "resolved", "closed"}

    def test_sender_role(self) -> None:
        assert {r.value for r in SenderRole} == {"customer", "staff", "system"}

    def test_ledger_entry_type(self) -> None:
        assert {t.value for t in LedgerEntryType} == {
            "PURCHASE", "REFUND_CREDIT", "ORDER_PAYMENT", "ADMIN_ADJUSTMENT",
        }
