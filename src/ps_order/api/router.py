"""ps_order REST API — customer order endpoints and the staff order desk."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.database import get_db_session
from src.ps_common.enums import OrderStatus
from src.ps_common.response import ApiResponse, respond
from src.ps_gateway.auth.dependencies import get_current_user, require_staff
from src.ps_gateway.user.db_models import UserModel
from src.ps_order.application.schemas import (
    OrderResponse,
    ProjectSummaryResponse,
    ReviewRequest,
    StatusUpdateRequest,
    SubmitOrderRequest,
    SubmitOrderResponse,
    TrackingRequest,
)
from src.ps_order.application.service import OrderService

router = APIRouter(tags=["orders"])

_service = OrderService()


# ---------------------------------------------------------------------------
# Customer
# ---------------------------------------------------------------------------


@router.post("/orders", status_code=201)
async def submit_order(
    body: SubmitOrderRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.submit_order(db, str(current_user.id), body)
    data = SubmitOrderResponse(
        order=OrderResponse.from_domain(result.order),
        redirect_url=result.redirect.redirect_url if result.redirect else None,
    )
    return respond(request, data.model_dump(), result.warnings)


@router.get("/orders")
async def list_orders(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: OrderStatus | None = Query(None),
    project_id: str | None = Query(None),
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_orders(
        db, str(current_user.id), status.value if status else None, project_id, cursor, limit
    )
    return respond(request, data.model_dump())


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.get_order(db, order_id, str(current_user.id))
    return respond(request, OrderResponse.from_domain(order).model_dump())


@router.post("/orders/{order_id}/review")
async def add_review(
    order_id: str,
    body: ReviewRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.add_review(db, str(current_user.id), order_id, body.review)
    return respond(request, OrderResponse.from_domain(order).model_dump())


@router.get("/projects/{project_id}")
async def get_project(
    project_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    summary = await _service.aggregate_project(db, project_id, str(current_user.id))
    return respond(request, ProjectSummaryResponse.from_domain(summary).model_dump())


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------


@router.get("/admin/orders")
async def admin_list_orders(
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: OrderStatus | None = Query(None),
    project_id: str | None = Query(None),
    user_id: str | None = Query(None),
    cursor: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    data = await _service.list_orders(
        db, user_id, status.value if status else None, project_id, cursor, limit
    )
    return respond(request, data.model_dump())


@router.get("/admin/orders/{order_id}")
async def admin_get_order(
    order_id: str,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.get_order(db, order_id)
    return respond(request, OrderResponse.from_domain(order).model_dump())


@router.patch("/admin/orders/{order_id}/status")
async def update_status(
    order_id: str,
    body: StatusUpdateRequest,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.update_status(db, order_id, body.status)
    return respond(request, OrderResponse.from_domain(order).model_dump())


@router.patch("/admin/orders/{order_id}/tracking")
async def update_tracking(
    order_id: str,
    body: TrackingRequest,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.update_tracking(db, order_id, body.tracking_code)
    return respond(request, OrderResponse.from_domain(order).model_dump())


@router.get("/admin/projects/{project_id}")
async def admin_get_project(
    project_id: str,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    summary = await _service.aggregate_project(db, project_id)
    return respond(request, ProjectSummaryResponse.from_domain(summary).model_dump())
