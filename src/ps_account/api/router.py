"""ps_account REST API — store-credit balance, ledger, staff adjustments."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_account.application.schemas import AdjustCreditsRequest, LedgerEntryItem
from src.ps_account.application.service import CreditApplicationService
from src.ps_common.database import get_db_session
from src.ps_common.response import ApiResponse, respond
from src.ps_gateway.auth.dependencies import get_current_user, require_staff
from src.ps_gateway.user.db_models import UserModel

router = APIRouter(tags=["credits"])

_service = CreditApplicationService()


@router.get("/credits/balance")
async def get_balance(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, str(current_user.id))
    return respond(request, data.model_dump())


@router.get("/credits/ledger")
async def list_ledger(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    entry_type: str | None = Query(None, description="Filter by LedgerEntryType"),
) -> ApiResponse:
    data = await _service.list_ledger(db, str(current_user.id), cursor, limit, entry_type)
    return respond(request, data.model_dump())


@router.post("/admin/credits/{user_id}/adjust")
async def adjust_credits(
    user_id: str,
    body: AdjustCreditsRequest,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    entry = await _service.adjust(
        db, user_id, body.amount, f"{body.description} (by {staff.username})"
    )
    return respond(request, LedgerEntryItem.from_domain(entry).model_dump())
