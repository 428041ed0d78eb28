"""Order status and payment-status transition tables.

Both tables are closed: every enum member has an entry, so adding a status
without deciding its transitions fails ``test_tables_are_exhaustive``.
"""

from src.ps_common.enums import OrderStatus, PaymentStatus
from src.ps_common.errors import InvalidTransitionError
from src.ps_order.domain.models import Order

S = OrderStatus
P = PaymentStatus

# Statuses an on_hold / refund_requested order may return to.
MAIN_LINE: tuple[OrderStatus, ...] = (
    S.SUBMITTED,
    S.IN_QUEUE,
    S.PRINTING,
    S.FINISHED,
    S.DELIVERED,
)

_SIDE_BRANCHES = frozenset({S.ON_HOLD, S.SUSPENDED, S.REFUND_REQUESTED})

STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    S.SUBMITTED: frozenset({S.IN_QUEUE}) | _SIDE_BRANCHES,
    S.IN_QUEUE: frozenset({S.PRINTING}) | _SIDE_BRANCHES,
    S.PRINTING: frozenset({S.FINISHED}) | _SIDE_BRANCHES,
    S.FINISHED: frozenset({S.DELIVERED}) | _SIDE_BRANCHES,
    S.DELIVERED: frozenset({S.REFUND_REQUESTED}),
    S.ON_HOLD: frozenset({S.SUBMITTED, S.IN_QUEUE, S.PRINTING, S.FINISHED,
                          S.SUSPENDED, S.REFUND_REQUESTED}),
    # Resolution target is narrowed to suspended or previous_status in check_status_transition
    S.REFUND_REQUESTED: frozenset(MAIN_LINE) | {S.SUSPENDED},
    S.SUSPENDED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    P.ON_HOLD: frozenset({P.PAID, P.REFUNDING}),
    P.PAID: frozenset({P.ON_HOLD, P.REFUNDING}),
    P.REFUNDING: frozenset({P.REFUNDED}),
    P.REFUNDED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in STATUS_TRANSITIONS[current]


def check_status_transition(
    current: OrderStatus,
    target: OrderStatus,
    previous_status: OrderStatus | None = None,
) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed.

    refund_requested only resolves to suspended or back to the status it came from.
    """
    if target == current:
        raise InvalidTransitionError("status", current.value, target.value, "already in this status")
    if not can_transition(current, target):
        raise InvalidTransitionError("status", current.value, target.value)
    if current in (S.REFUND_REQUESTED, S.ON_HOLD) and target in MAIN_LINE:
        if previous_status is not None and target != previous_status:
            raise InvalidTransitionError(
                "status",
                current.value,
                target.value,
                f"can only return to {previous_status.value}",
            )


def check_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransitionError("payment_status", current.value, target.value)


def check_consistency(status: OrderStatus, payment_status: PaymentStatus) -> None:
    """A suspended order never shows as paid."""
    if status == S.SUSPENDED and payment_status == P.PAID:
        raise InvalidTransitionError(
            "status", payment_status.value, status.value, "a paid order must be refunded when suspended"
        )


def apply_status(order: Order, target: OrderStatus) -> OrderStatus:
    """Validate and apply ``order.status -> target``, maintaining previous_status.

    Entering on_hold / refund_requested from the main line remembers where the
    order was; hopping between side branches keeps the original memory.
    Returns the status the order left.
    """
    current = order.status
    check_status_transition(current, target, order.previous_status)
    if target in (S.ON_HOLD, S.REFUND_REQUESTED):
        if current in MAIN_LINE:
            order.previous_status = current
    else:
        order.previous_status = None
    order.status = target
    return current
