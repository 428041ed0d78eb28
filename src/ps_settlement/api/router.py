"""ps_settlement REST API — edits, cancellations, refunds, payment webhook."""

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ps_common.database import get_db_session
from src.ps_common.errors import InvalidWebhookSecretError
from src.ps_common.money import to_display
from src.ps_common.response import ApiResponse, respond
from src.ps_gateway.auth.dependencies import get_current_user, require_staff
from src.ps_gateway.user.db_models import UserModel
from src.ps_order.application.schemas import OrderResponse
from src.ps_settlement.application.schemas import (
    CancelResponse,
    EditOrderRequest,
    EditResponse,
    ItemFailureResponse,
    PaymentConfirmation,
    ProjectBatchResponse,
    ProjectEditRequest,
    RefundReceiptResponse,
    RefundRequestBody,
    ResolveRefundRequest,
    SettleProjectRefundRequest,
    SettleRefundRequest,
)
from src.ps_settlement.application.service import (
    CancelResult,
    EditResult,
    ProjectBatchResult,
    RefundReceipt,
    SettlementService,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["settlement"])

_service = SettlementService()


def _edit_response(result: EditResult) -> dict:
    return EditResponse(
        order=OrderResponse.from_domain(result.order),
        refund_amount=result.refund_amount,
        refund_amount_display=to_display(result.refund_amount),
        amount_due=result.amount_due,
        pending_update=result.pending_update,
        redirect_url=result.redirect.redirect_url if result.redirect else None,
    ).model_dump()


def _cancel_response(result: CancelResult) -> dict:
    return CancelResponse(
        order=OrderResponse.from_domain(result.order),
        refund_amount=result.refund_amount,
        refund_amount_display=to_display(result.refund_amount),
        pending_update=result.pending_update,
    ).model_dump()


def _receipt_response(receipt: RefundReceipt) -> dict:
    return RefundReceiptResponse(
        refund_id=receipt.refund_id,
        order_id=receipt.order_id,
        method=receipt.method.value,
        amount=receipt.amount,
        amount_display=to_display(receipt.amount),
        payment_status=receipt.payment_status.value,
        ledger_entry_id=receipt.ledger_entry.id if receipt.ledger_entry else None,
        already_settled=receipt.already_settled,
        conversation_updated=receipt.conversation_updated,
    ).model_dump()


def _batch_response(result: ProjectBatchResult) -> dict:
    return ProjectBatchResponse(
        project_id=result.project_id,
        succeeded=result.succeeded,
        failures=[
            ItemFailureResponse(order_id=f.order_id, code=f.code, message=f.message)
            for f in result.failures
        ],
        succeeded_count=result.succeeded_count,
        failed_count=result.failed_count,
        total_refund=result.total_refund,
        total_refund_display=to_display(result.total_refund),
        pending_updates=result.pending_updates,
    ).model_dump()


async def verify_webhook_secret(
    x_webhook_secret: Annotated[str | None, Header()] = None,
) -> None:
    expected = settings.PAYMENT_WEBHOOK_SECRET
    if not expected or not x_webhook_secret:
        raise InvalidWebhookSecretError()
    if not hmac.compare_digest(x_webhook_secret.encode(), expected.encode()):
        raise InvalidWebhookSecretError()


# ---------------------------------------------------------------------------
# Customer: single order
# ---------------------------------------------------------------------------


@router.post("/orders/{order_id}/edit")
async def request_edit(
    order_id: str,
    body: EditOrderRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.request_edit(
        db, order_id, body.new_price, body.print_parameters, str(current_user.id)
    )
    return respond(request, _edit_response(result), result.warnings)


@router.post("/orders/{order_id}/cancel")
async def request_cancellation(
    order_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.request_cancellation(db, order_id, str(current_user.id))
    return respond(request, _cancel_response(result))


@router.post("/orders/{order_id}/refund/settle")
async def settle_refund(
    order_id: str,
    body: SettleRefundRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    receipt = await _service.settle_refund(
        db, order_id, body.method, body.bank_details, body.pending_update, str(current_user.id)
    )
    return respond(request, _receipt_response(receipt))


@router.post("/orders/{order_id}/refund-request")
async def request_refund(
    order_id: str,
    body: RefundRequestBody,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.request_refund(db, str(current_user.id), order_id, body.reason)
    return respond(request, OrderResponse.from_domain(order).model_dump())


# ---------------------------------------------------------------------------
# Customer: whole project
# ---------------------------------------------------------------------------


@router.post("/projects/{project_id}/edit")
async def request_project_edit(
    project_id: str,
    body: ProjectEditRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    edits = [(i.order_id, i.new_price, i.print_parameters) for i in body.items]
    result = await _service.request_project_edit(db, project_id, edits, str(current_user.id))
    return respond(request, _batch_response(result))


@router.post("/projects/{project_id}/cancel")
async def request_project_cancellation(
    project_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.request_project_cancellation(db, project_id, str(current_user.id))
    return respond(request, _batch_response(result))


@router.post("/projects/{project_id}/refund/settle")
async def settle_project_refund(
    project_id: str,
    body: SettleProjectRefundRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.settle_project_refund(
        db, project_id, body.method, body.bank_details, body.pending_updates, str(current_user.id)
    )
    return respond(request, _batch_response(result))


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------


@router.post("/admin/orders/{order_id}/edit")
async def admin_request_edit(
    order_id: str,
    body: EditOrderRequest,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.request_edit(db, order_id, body.new_price, body.print_parameters)
    return respond(request, _edit_response(result), result.warnings)


@router.post("/admin/orders/{order_id}/cancel")
async def admin_request_cancellation(
    order_id: str,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.request_cancellation(db, order_id)
    return respond(request, _cancel_response(result))


@router.post("/admin/orders/{order_id}/refund-request/resolve")
async def resolve_refund_request(
    order_id: str,
    body: ResolveRefundRequest,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.resolve_refund_request(db, order_id, body.approve)
    return respond(request, _cancel_response(result))


@router.post("/admin/payments/confirm")
async def admin_confirm_payment(
    body: PaymentConfirmation,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    """Manual confirmation, e.g. once a bank transfer refund has gone out."""
    order, applied = await _service.on_payment_confirmed(
        db, body.order_id, body.amount, body.transaction_id
    )
    logger.info("Staff %s confirmed %s for order %s", staff.username, body.transaction_id, order.id)
    return respond(
        request, {"applied": applied, "order": OrderResponse.from_domain(order).model_dump()}
    )


# ---------------------------------------------------------------------------
# Payment gateway webhook
# ---------------------------------------------------------------------------


@router.post("/payments/confirm", dependencies=[Depends(verify_webhook_secret)])
async def confirm_payment(
    body: PaymentConfirmation,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order, applied = await _service.on_payment_confirmed(
        db, body.order_id, body.amount, body.transaction_id
    )
    return respond(
        request, {"applied": applied, "order": OrderResponse.from_domain(order).model_dump()}
    )
