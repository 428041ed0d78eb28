"""ps_conversation REST API — support threads for customers and staff.

Customers and staff share the thread endpoints; the caller's role decides
whose read marker and typing flag are touched.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.database import get_db_session
from src.ps_common.enums import ConversationStatus
from src.ps_common.response import ApiResponse, respond
from src.ps_conversation.application.schemas import (
    ConversationStatusRequest,
    CreateConversationRequest,
    PostMessageRequest,
    TypingRequest,
    UnreadCountResponse,
)
from src.ps_conversation.application.service import ConversationService
from src.ps_conversation.domain.models import Viewer
from src.ps_gateway.auth.dependencies import get_current_user, require_staff, sender_role_for
from src.ps_gateway.user.db_models import UserModel

router = APIRouter(tags=["conversations"])

_service = ConversationService()


def _viewer(user: UserModel) -> Viewer:
    return Viewer(user_id=str(user.id), role=sender_role_for(user))


@router.post("/orders/{order_id}/conversation", status_code=201)
async def open_conversation(
    order_id: str,
    body: CreateConversationRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    view = await _service.get_or_create(db, _viewer(current_user), order_id, body.subject)
    return respond(request, view.model_dump())


@router.get("/conversations")
async def list_conversations(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: ConversationStatus | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    views = await _service.list_conversations(
        db, _viewer(current_user), status.value if status else None, limit, offset
    )
    return respond(request, [v.model_dump() for v in views])


@router.get("/conversations/unread-count")
async def unread_count(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    total = await _service.total_unread(db, _viewer(current_user))
    return respond(request, UnreadCountResponse(unread_count=total).model_dump())


@router.get("/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    view = await _service.get_conversation(db, _viewer(current_user), conversation_id)
    return respond(request, view.model_dump())


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(
    conversation_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(200, ge=1, le=500),
) -> ApiResponse:
    data = await _service.list_messages(db, _viewer(current_user), conversation_id, limit)
    return respond(request, data.model_dump())


@router.post("/conversations/{conversation_id}/messages", status_code=201)
async def post_message(
    conversation_id: str,
    body: PostMessageRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    message = await _service.post_message(
        db, _viewer(current_user), conversation_id, body.body, body.attachments
    )
    return respond(request, message.model_dump())


@router.post("/conversations/{conversation_id}/read")
async def mark_read(
    conversation_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    view = await _service.mark_read(db, _viewer(current_user), conversation_id)
    return respond(request, view.model_dump())


@router.post("/conversations/{conversation_id}/typing")
async def set_typing(
    conversation_id: str,
    body: TypingRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.set_typing(db, _viewer(current_user), conversation_id, body.is_typing)
    return respond(request, {"is_typing": body.is_typing})


@router.patch("/admin/conversations/{conversation_id}/status")
async def update_status(
    conversation_id: str,
    body: ConversationStatusRequest,
    staff: Annotated[UserModel, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    view = await _service.update_status(db, _viewer(staff), conversation_id, body.status)
    return respond(request, view.model_dump())
