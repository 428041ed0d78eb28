"""Pydantic schemas for ps_settlement API."""

from typing import Any

from pydantic import BaseModel, Field

from src.ps_common.enums import RefundMethod
from src.ps_order.application.schemas import OrderResponse

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class EditOrderRequest(BaseModel):
    new_price: int = Field(..., ge=0, description="Re-quoted price in minor units")
    print_parameters: dict[str, Any] | None = None


class ProjectEditItem(BaseModel):
    order_id: str
    new_price: int = Field(..., ge=0)
    print_parameters: dict[str, Any] | None = None


class ProjectEditRequest(BaseModel):
    items: list[ProjectEditItem] = Field(..., min_length=1)


class SettleRefundRequest(BaseModel):
    method: RefundMethod
    bank_details: str | None = Field(None, max_length=500)
    pending_update: dict[str, Any] | None = Field(
        None, description="The staged command returned by edit/cancel, passed back verbatim"
    )


class SettleProjectRefundRequest(BaseModel):
    method: RefundMethod
    bank_details: str | None = Field(None, max_length=500)
    pending_updates: dict[str, dict[str, Any]] = Field(
        ..., description="order_id -> staged command"
    )


class RefundRequestBody(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class ResolveRefundRequest(BaseModel):
    approve: bool


class PaymentConfirmation(BaseModel):
    order_id: str
    amount: int = Field(..., ge=0)
    transaction_id: str = Field(..., min_length=1, max_length=100)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class EditResponse(BaseModel):
    order: OrderResponse
    refund_amount: int
    refund_amount_display: str
    amount_due: int
    pending_update: dict[str, Any] | None
    redirect_url: str | None = None


class CancelResponse(BaseModel):
    order: OrderResponse
    refund_amount: int
    refund_amount_display: str
    pending_update: dict[str, Any] | None


class RefundReceiptResponse(BaseModel):
    refund_id: str
    order_id: str
    method: str
    amount: int
    amount_display: str
    payment_status: str
    ledger_entry_id: int | None
    already_settled: bool
    conversation_updated: bool


class ItemFailureResponse(BaseModel):
    order_id: str
    code: int
    message: str


class ProjectBatchResponse(BaseModel):
    project_id: str
    succeeded: list[str]
    failures: list[ItemFailureResponse]
    succeeded_count: int
    failed_count: int
    total_refund: int
    total_refund_display: str
    pending_updates: dict[str, dict[str, Any]]