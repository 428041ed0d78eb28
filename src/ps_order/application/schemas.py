"""Pydantic schemas for ps_order API."""

import base64
import json
from typing import Any

from pydantic import BaseModel, Field

from src.ps_common.datetime_utils import isoformat_or_none
from src.ps_common.enums import OrderStatus, PaymentPath, ShippingMethod
from src.ps_common.id_generator import order_number
from src.ps_common.money import to_display
from src.ps_order.domain.models import Order, ProjectSummary

# ---------------------------------------------------------------------------
# Cursor utilities (order ids are snowflake strings, newest first)
# ---------------------------------------------------------------------------


def cursor_encode(last_id: str) -> str:
    return base64.b64encode(json.dumps({"id": last_id}).encode()).decode()


def cursor_decode(cursor: str | None) -> str | None:
    if cursor is None:
        return None
    try:
        return str(json.loads(base64.b64decode(cursor.encode()).decode())["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SubmitOrderRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    price: int = Field(..., gt=0, description="Quoted price in minor units")
    print_parameters: dict[str, Any] = Field(default_factory=dict)
    payment_path: PaymentPath = PaymentPath.GATEWAY
    project_id: str | None = Field(None, max_length=64)
    project_name: str | None = Field(None, max_length=200)
    shipping_method: ShippingMethod = ShippingMethod.PICKUP
    shipping_address: dict[str, Any] | None = None


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class TrackingRequest(BaseModel):
    tracking_code: str = Field(..., min_length=1, max_length=100)


class ReviewRequest(BaseModel):
    review: str = Field(..., min_length=1, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OrderResponse(BaseModel):
    id: str
    order_number: str | None
    user_id: str
    project_id: str | None
    project_name: str | None
    file_name: str
    print_parameters: dict[str, Any]
    status: str
    payment_status: str
    previous_status: str | None
    price: int
    price_display: str
    paid_amount: int
    refund_method: str | None
    refund_amount: int | None
    refund_reason: str | None
    pending_update_id: str | None
    pending_update: dict[str, Any] | None
    shipping_method: str
    shipping_address: dict[str, Any] | None
    tracking_code: str | None
    review: str | None
    version: int
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(cls, o: Order) -> "OrderResponse":
        return cls(
            id=o.id,
            order_number=order_number(o.id, o.created_at) if o.created_at else None,
            user_id=o.user_id,
            project_id=o.project_id,
            project_name=o.project_name,
            file_name=o.file_name,
            print_parameters=o.print_parameters,
            status=o.status.value,
            payment_status=o.payment_status.value,
            previous_status=o.previous_status.value if o.previous_status else None,
            price=o.price,
            price_display=to_display(o.price),
            paid_amount=o.paid_amount,
            refund_method=o.refund_method,
            refund_amount=o.refund_amount,
            refund_reason=o.refund_reason,
            pending_update_id=o.pending_update_id,
            pending_update=o.pending_update,
            shipping_method=o.shipping_method,
            shipping_address=o.shipping_address,
            tracking_code=o.tracking_code,
            review=o.review,
            version=o.version,
            created_at=isoformat_or_none(o.created_at),
            updated_at=isoformat_or_none(o.updated_at),
        )


class SubmitOrderResponse(BaseModel):
    order: OrderResponse
    redirect_url: str | None = None


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool


class ProjectSummaryResponse(BaseModel):
    project_id: str
    project_name: str | None
    member_count: int
    total_price: int
    total_price_display: str
    total_paid: int
    total_refund: int
    order_ids: list[str]
    suspended_order_ids: list[str]

    @classmethod
    def from_domain(cls, s: ProjectSummary) -> "ProjectSummaryResponse":
        return cls(
            project_id=s.project_id,
            project_name=s.project_name,
            member_count=s.member_count,
            total_price=s.total_price,
            total_price_display=to_display(s.total_price),
            total_paid=s.total_paid,
            total_refund=s.total_refund,
            order_ids=s.order_ids,
            suspended_order_ids=s.suspended_order_ids,
        )
