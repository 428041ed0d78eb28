"""Refund amounts and payment-status paths.

``paid -> refunded`` is never a single step: a refund passes through
``refunding`` so the table in the state machine holds at every write. The one
exception is the balance left after a settled edit refund; the order already
sits at ``refunded``, so that remainder can only go back as store credit.
"""
from src.ps_common.enums import PaymentStatus, RefundMethod
from src.ps_common.errors import BankDetailsRequiredError, InvalidTransitionError
from src.ps_common.money import refund_for_edit
from src.ps_order.domain.models import Order
from src.ps_order.domain.state_machine import check_payment_transition


def edit_refund(order: Order, new_price: int) -> int:
    """Refund quoted for a price reduction: the full difference."""
    return refund_for_edit(order.price, new_price)


def cancellation_refund(order: Order) -> int:
    return order.paid_amount


def payable_refund(order: Order, quoted: int, kept_price: int) -> int:
    """Money that actually goes back when a quoted refund settles.

    Only what was paid above ``kept_price`` is returned, so settling an edit on
    an order nobody has paid for yet just lowers the amount due.
    """
    return min(quoted, max(0, order.paid_amount - kept_price))


def amount_due(order: Order, new_price: int) -> int:
    return max(0, new_price - order.paid_amount)


def settled_payment_status(order: Order) -> PaymentStatus:
    """Payment status an order settles at once nothing is pending."""
    if order.paid_amount > 0 and order.paid_amount >= order.price:
        return PaymentStatus.PAID
    return PaymentStatus.ON_HOLD


def move_payment(order: Order, target: PaymentStatus) -> None:
    """Apply one validated payment-status step (no-op if already there)."""
    if order.payment_status == target:
        return
    check_payment_transition(order.payment_status, target)
    order.payment_status = target


def move_refund(order: Order, method: RefundMethod) -> None:
    """Payment-status steps for a refund paid out via ``method``.

    Credit refunds are final at once; bank and original refunds stay
    ``refunding`` until the bank or gateway confirms them.
    """
    if order.payment_status == PaymentStatus.REFUNDED:
        if method != RefundMethod.CREDIT:
            raise InvalidTransitionError(
                "payment_status",
                PaymentStatus.REFUNDED.value,
                PaymentStatus.REFUNDING.value,
                "the balance left after a partial refund can only be returned as credit",
            )
        return
    move_payment(order, PaymentStatus.REFUNDING)
    if method == RefundMethod.CREDIT:
        move_payment(order, PaymentStatus.REFUNDED)


def check_refund_method(method: RefundMethod, bank_details: str | None) -> None:
    if method == RefundMethod.BANK and not (bank_details and bank_details.strip()):
        raise BankDetailsRequiredError()
