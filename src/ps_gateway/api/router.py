"""Auth API router: register, login, refresh, current account.

All endpoints return ApiResponse. request_id is read from
request.state (injected by RequestLogMiddleware).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ps_common.database import get_db_session
from src.ps_common.response import ApiResponse, respond
from src.ps_gateway.auth.dependencies import get_current_user
from src.ps_gateway.user.db_models import UserModel
from src.ps_gateway.user.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)
from src.ps_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
_service = UserService()

_ACCESS_TTL_SECONDS = settings.JWT_EXPIRE_MINUTES * 60


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Customer registration")
async def register(
    request: Request,
    body: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    async with db.begin():
        user = await _service.register(
            body.username, body.email, body.password, db, body.full_name, body.phone
        )
    data = RegisterResponse(
        **UserInfo.from_model(user).model_dump(), created_at=user.created_at.isoformat()
    )
    resp = respond(request, data.model_dump())
    resp.message = "Account created"
    return resp


@router.post("/login", summary="Login with username and password")
async def login(
    request: Request,
    body: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user, access_token, refresh_token = await _service.login(body.username, body.password, db)
    data = LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=_ACCESS_TTL_SECONDS,
        user=UserInfo.from_model(user),
    )
    return respond(request, data.model_dump())


@router.post("/refresh", summary="Exchange a refresh token for a new access token")
async def refresh_token(
    request: Request,
    body: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    access_token = await _service.refresh(body.refresh_token, db)
    data = RefreshResponse(access_token=access_token, expires_in=_ACCESS_TTL_SECONDS)
    return respond(request, data.model_dump())


@router.get("/me", summary="Current account")
async def me(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> ApiResponse:
    return respond(request, UserInfo.from_model(current_user).model_dump())
