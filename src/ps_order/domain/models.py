"""Order domain models — pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.ps_common.enums import OrderStatus, PaymentStatus

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.SUSPENDED})


@dataclass
class Order:
    id: str
    user_id: str
    file_name: str
    price: int  # minor units
    status: OrderStatus = OrderStatus.SUBMITTED
    payment_status: PaymentStatus = PaymentStatus.ON_HOLD
    paid_amount: int = 0
    project_id: str | None = None
    project_name: str | None = None
    print_parameters: dict[str, Any] = field(default_factory=dict)
    shipping_method: str = "pickup"
    shipping_address: dict[str, Any] | None = None
    tracking_code: str | None = None
    review: str | None = None
    # Refund fields: only set while a refund is active
    refund_method: str | None = None
    refund_amount: int | None = None
    refund_reason: str | None = None
    refund_bank_details: str | None = None
    # Staged command (single slot, latest write wins)
    pending_update_id: str | None = None
    pending_update: dict[str, Any] | None = None
    settled_refund_id: str | None = None
    previous_status: OrderStatus | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class ProjectSummary:
    """Virtual project built from sibling orders; recomputed on every read."""

    project_id: str
    project_name: str | None
    member_count: int
    total_price: int
    total_paid: int
    total_refund: int
    order_ids: list[str]
    suspended_order_ids: list[str]
