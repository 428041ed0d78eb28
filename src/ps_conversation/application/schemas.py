"""Pydantic schemas for ps_conversation API."""

from typing import Any

from pydantic import BaseModel, Field

from src.ps_common.datetime_utils import isoformat_or_none
from src.ps_common.enums import ConversationStatus
from src.ps_conversation.domain.models import Conversation, Message, Viewer
from src.ps_conversation.domain.read_state import is_read_by_recipient

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateConversationRequest(BaseModel):
    subject: str | None = Field(None, max_length=200)


class PostMessageRequest(BaseModel):
    body: str = Field(..., min_length=1, max_length=5000)
    attachments: list[dict[str, Any]] = Field(default_factory=list, max_length=10)


class TypingRequest(BaseModel):
    is_typing: bool


class ConversationStatusRequest(BaseModel):
    status: ConversationStatus


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class MessageView(BaseModel):
    id: str
    conversation_id: str
    sender_role: str
    sender_id: str | None
    body: str
    attachments: list[dict[str, Any]]
    is_read: bool
    created_at: str

    @classmethod
    def from_domain(cls, m: Message, conversation: Conversation) -> "MessageView":
        return cls(
            id=m.id,
            conversation_id=m.conversation_id,
            sender_role=m.sender_role.value,
            sender_id=m.sender_id,
            body=m.body,
            attachments=m.attachments,
            is_read=is_read_by_recipient(m, conversation),
            created_at=m.created_at.isoformat(),
        )


class ConversationView(BaseModel):
    """One conversation as seen by one viewer."""

    id: str
    order_id: str
    user_id: str
    subject: str
    status: str
    unread_count: int
    customer_unread: int
    staff_unread: int
    staff_read: bool
    counterpart_typing: bool
    customer_last_read_at: str | None
    staff_last_read_at: str | None
    last_message: MessageView | None
    order_status: str | None
    order_file_name: str | None
    project_id: str | None
    created_at: str | None
    updated_at: str | None

    @classmethod
    def build(cls, c: Conversation, viewer: Viewer, typing: bool) -> "ConversationView":
        return cls(
            id=c.id,
            order_id=c.order_id,
            user_id=c.user_id,
            subject=c.subject,
            status=c.status.value,
            unread_count=c.staff_unread if viewer.is_staff else c.customer_unread,
            customer_unread=c.customer_unread,
            staff_unread=c.staff_unread,
            staff_read=c.staff_unread == 0,
            counterpart_typing=typing,
            customer_last_read_at=isoformat_or_none(c.customer_last_read_at),
            staff_last_read_at=isoformat_or_none(c.staff_last_read_at),
            last_message=MessageView.from_domain(c.last_message, c) if c.last_message else None,
            order_status=c.order_status,
            order_file_name=c.order_file_name,
            project_id=c.project_id,
            created_at=isoformat_or_none(c.created_at),
            updated_at=isoformat_or_none(c.updated_at),
        )


class MessagesResponse(BaseModel):
    conversation: ConversationView
    messages: list[MessageView]


class UnreadCountResponse(BaseModel):
    unread_count: int
