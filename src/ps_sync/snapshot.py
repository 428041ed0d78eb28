"""Client-side snapshot types parsed from API payloads."""
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MessageSnapshot:
    id: str
    conversation_id: str
    sender_role: str
    body: str
    created_at: str
    is_read: bool = False
    attachments: tuple[dict[str, Any], ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "MessageSnapshot":
        return cls(
            id=data["id"],
            conversation_id=data["conversation_id"],
            sender_role=data["sender_role"],
            body=data["body"],
            created_at=data["created_at"],
            is_read=bool(data.get("is_read", False)),
            attachments=tuple(data.get("attachments") or ()),
        )


@dataclass(frozen=True)
class ConversationSnapshot:
    id: str
    order_id: str
    subject: str
    status: str
    unread_count: int
    counterpart_typing: bool
    updated_at: str | None = None
    last_message: MessageSnapshot | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ConversationSnapshot":
        last = data.get("last_message")
        return cls(
            id=data["id"],
            order_id=data["order_id"],
            subject=data["subject"],
            status=data["status"],
            unread_count=int(data.get("unread_count", 0)),
            counterpart_typing=bool(data.get("counterpart_typing", False)),
            updated_at=data.get("updated_at"),
            last_message=MessageSnapshot.from_api(last) if last else None,
        )


@dataclass(frozen=True)
class OrderSnapshot:
    id: str
    status: str
    payment_status: str
    price: int
    project_id: str | None = None
    pending_update: dict[str, Any] | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "OrderSnapshot":
        return cls(
            id=data["id"],
            status=data["status"],
            payment_status=data["payment_status"],
            price=int(data["price"]),
            project_id=data.get("project_id"),
            pending_update=data.get("pending_update"),
        )


@dataclass
class PendingMessage:
    """A message sent from this client that no pull has confirmed yet."""

    local_id: str
    conversation_id: str
    body: str
    server_id: str | None = None
    failed: bool = False
    attachments: list[dict[str, Any]] = field(default_factory=list)
