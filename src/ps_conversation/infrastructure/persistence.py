"""ConversationRepository — raw SQL persistence implementation.

Unread counters and the last message are computed in the list/get query so a
single round trip gives the sync client a complete snapshot.
"""
import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.enums import ConversationStatus, SenderRole
from src.ps_conversation.domain.models import Conversation, Message

_INSERT_CONVERSATION_SQL = text("""
    INSERT INTO conversations (id, order_id, user_id, subject, status)
    VALUES (:id, :order_id, :user_id, :subject, :status)
    RETURNING created_at, updated_at
""")

_SELECT_CONVERSATION = """
    SELECT c.id, c.order_id, c.user_id, c.subject, c.status,
           c.customer_last_read_at, c.staff_last_read_at, c.created_at, c.updated_at,
           o.status AS order_status, o.file_name AS order_file_name, o.project_id,
           (SELECT COUNT(*) FROM conversation_messages m
             WHERE m.conversation_id = c.id
               AND m.sender_role IN ('staff', 'system')
               AND (c.customer_last_read_at IS NULL OR m.created_at > c.customer_last_read_at)
           ) AS customer_unread,
           (SELECT COUNT(*) FROM conversation_messages m
             WHERE m.conversation_id = c.id
               AND m.sender_role = 'customer'
               AND (c.staff_last_read_at IS NULL OR m.created_at > c.staff_last_read_at)
           ) AS staff_unread,
           lm.id AS lm_id, lm.sender_role AS lm_sender_role, lm.sender_id AS lm_sender_id,
           lm.body AS lm_body, lm.attachments AS lm_attachments, lm.created_at AS lm_created_at
    FROM conversations c
    LEFT JOIN orders o ON o.id = c.order_id
    LEFT JOIN LATERAL (
        SELECT id, sender_role, sender_id, body, attachments, created_at
        FROM conversation_messages
        WHERE conversation_id = c.id
        ORDER BY created_at DESC, id DESC
        LIMIT 1
    ) lm ON TRUE
"""

_GET_BY_ID_SQL = text(f"{_SELECT_CONVERSATION} WHERE c.id = :id")

_GET_BY_ORDER_SQL = text(f"{_SELECT_CONVERSATION} WHERE c.order_id = :order_id")

_LIST_SQL = text(f"""
    {_SELECT_CONVERSATION}
    WHERE (CAST(:user_id AS TEXT) IS NULL OR c.user_id = :user_id)
      AND (CAST(:status AS TEXT) IS NULL OR c.status = :status)
    ORDER BY c.updated_at DESC, c.id DESC
    LIMIT :limit OFFSET :offset
""")

_UPDATE_STATUS_SQL = text("""
    UPDATE conversations SET status = :status, updated_at = :at WHERE id = :id
""")

_SET_CUSTOMER_READ_SQL = text("""
    UPDATE conversations
    SET customer_last_read_at = GREATEST(COALESCE(customer_last_read_at, :at), :at)
    WHERE id = :id
""")

_SET_STAFF_READ_SQL = text("""
    UPDATE conversations
    SET staff_last_read_at = GREATEST(COALESCE(staff_last_read_at, :at), :at)
    WHERE id = :id
""")

_INSERT_MESSAGE_SQL = text("""
    INSERT INTO conversation_messages
        (id, conversation_id, sender_role, sender_id, body, attachments, created_at)
    VALUES (:id, :conversation_id, :sender_role, :sender_id, :body,
        CAST(:attachments AS JSONB), :created_at)
""")

_TOUCH_CONVERSATION_SQL = text("""
    UPDATE conversations SET updated_at = :at WHERE id = :id
""")

# Newest N, returned oldest-first
_LIST_MESSAGES_SQL = text("""
    SELECT * FROM (
        SELECT id, conversation_id, sender_role, sender_id, body, attachments, created_at
        FROM conversation_messages
        WHERE conversation_id = :conversation_id
        ORDER BY created_at DESC, id DESC
        LIMIT :limit
    ) recent
    ORDER BY created_at ASC, id ASC
""")


_COUNT_CUSTOMER_UNREAD_SQL = text("""
    SELECT COUNT(*) FROM conversation_messages m
    JOIN conversations c ON c.id = m.conversation_id
    WHERE (CAST(:user_id AS TEXT) IS NULL OR c.user_id = :user_id)
      AND m.sender_role IN ('staff', 'system')
      AND (c.customer_last_read_at IS NULL OR m.created_at > c.customer_last_read_at)
""")

_COUNT_STAFF_UNREAD_SQL = text("""
    SELECT COUNT(*) FROM conversation_messages m
    JOIN conversations c ON c.id = m.conversation_id
    WHERE (CAST(:user_id AS TEXT) IS NULL OR c.user_id = :user_id)
      AND m.sender_role = 'customer'
      AND (c.staff_last_read_at IS NULL OR m.created_at > c.staff_last_read_at)
""")

def _row_to_message(row: Any) -> Message:
    return Message(
        id=row.id,
        conversation_id=row.conversation_id,
        sender_role=SenderRole(row.sender_role),
        sender_id=row.sender_id,
        body=row.body,
        attachments=row.attachments or [],
        created_at=row.created_at,
    )


def _row_to_conversation(row: Any) -> Conversation:
    last_message = None
    if row.lm_id is not None:
        last_message = Message(
            id=row.lm_id,
            conversation_id=row.id,
            sender_role=SenderRole(row.lm_sender_role),
            sender_id=row.lm_sender_id,
            body=row.lm_body,
            attachments=row.lm_attachments or [],
            created_at=row.lm_created_at,
        )
    return Conversation(
        id=row.id,
        order_id=row.order_id,
        user_id=row.user_id,
        subject=row.subject,
        status=ConversationStatus(row.status),
        customer_last_read_at=row.customer_last_read_at,
        staff_last_read_at=row.staff_last_read_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        customer_unread=row.customer_unread,
        staff_unread=row.staff_unread,
        last_message=last_message,
        order_status=row.order_status,
        order_file_name=row.order_file_name,
        project_id=row.project_id,
    )


class ConversationRepository:
    """Concrete implementation of ConversationRepositoryProtocol using raw SQL."""

    async def create(self, conversation: Conversation, db: AsyncSession) -> None:
        result = await db.execute(
            _INSERT_CONVERSATION_SQL,
            {
                "id": conversation.id,
                "order_id": conversation.order_id,
                "user_id": conversation.user_id,
                "subject": conversation.subject,
                "status": conversation.status.value,
            },
        )
        row = result.fetchone()
        if row is not None:
            conversation.created_at = row.created_at
            conversation.updated_at = row.updated_at

    async def get_by_id(self, conversation_id: str, db: AsyncSession) -> Conversation | None:
        result = await db.execute(_GET_BY_ID_SQL, {"id": conversation_id})
        row = result.fetchone()
        return _row_to_conversation(row) if row else None

    async def get_by_order(self, order_id: str, db: AsyncSession) -> Conversation | None:
        result = await db.execute(_GET_BY_ORDER_SQL, {"order_id": order_id})
        row = result.fetchone()
        return _row_to_conversation(row) if row else None

    async def list_conversations(
        self,
        user_id: str | None,
        status: str | None,
        limit: int,
        offset: int,
        db: AsyncSession,
    ) -> list[Conversation]:
        result = await db.execute(
            _LIST_SQL,
            {"user_id": user_id, "status": status, "limit": limit, "offset": offset},
        )
        return [_row_to_conversation(row) for row in result.fetchall()]

    async def update_status(
        self, conversation_id: str, status: ConversationStatus, at: datetime, db: AsyncSession
    ) -> None:
        await db.execute(
            _UPDATE_STATUS_SQL, {"id": conversation_id, "status": status.value, "at": at}
        )

    async def set_read_marker(
        self, conversation_id: str, role: SenderRole, at: datetime, db: AsyncSession
    ) -> None:
        stmt = _SET_STAFF_READ_SQL if role == SenderRole.STAFF else _SET_CUSTOMER_READ_SQL
        await db.execute(stmt, {"id": conversation_id, "at": at})

    async def add_message(self, message: Message, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_MESSAGE_SQL,
            {
                "id": message.id,
                "conversation_id": message.conversation_id,
                "sender_role": message.sender_role.value,
                "sender_id": message.sender_id,
                "body": message.body,
                "attachments": json.dumps(message.attachments),
                "created_at": message.created_at,
            },
        )
        await db.execute(
            _TOUCH_CONVERSATION_SQL, {"id": message.conversation_id, "at": message.created_at}
        )

    async def list_messages(
        self, conversation_id: str, limit: int, db: AsyncSession
    ) -> list[Message]:
        result = await db.execute(
            _LIST_MESSAGES_SQL, {"conversation_id": conversation_id, "limit": limit}
        )
        return [_row_to_message(row) for row in result.fetchall()]

    async def count_unread(
        self, user_id: str | None, reader: SenderRole, db: AsyncSession
    ) -> int:
        stmt = _COUNT_STAFF_UNREAD_SQL if reader == SenderRole.STAFF else _COUNT_CUSTOMER_UNREAD_SQL
        result = await db.execute(stmt, {"user_id": user_id})
        return int(result.scalar_one())
