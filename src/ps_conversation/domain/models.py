"""Conversation domain models — pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.ps_common.enums import ConversationStatus, SenderRole


@dataclass
class Message:
    """Immutable once stored. ``is_read`` is derived, never written."""

    id: str
    conversation_id: str
    sender_role: SenderRole
    body: str
    created_at: datetime
    sender_id: str | None = None
    attachments: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class Conversation:
    id: str
    order_id: str
    user_id: str
    subject: str
    status: ConversationStatus = ConversationStatus.OPEN
    customer_last_read_at: datetime | None = None
    staff_last_read_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Read-side joins, filled by list/get queries
    customer_unread: int = 0
    staff_unread: int = 0
    last_message: Message | None = None
    order_status: str | None = None
    order_file_name: str | None = None
    project_id: str | None = None

    def last_read_at(self, role: SenderRole) -> datetime | None:
        if role == SenderRole.STAFF:
            return self.staff_last_read_at
        return self.customer_last_read_at


@dataclass
class TypingState:
    """Single-owner typing flag; a newer heartbeat from the other party replaces it."""

    role: SenderRole
    heartbeat_at: datetime


@dataclass
class Viewer:
    user_id: str
    role: SenderRole

    @property
    def is_staff(self) -> bool:
        return self.role == SenderRole.STAFF
