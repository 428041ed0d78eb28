"""Conversation persistence contracts (SQL store + ephemeral typing store)."""
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.enums import ConversationStatus, SenderRole
from src.ps_conversation.domain.models import Conversation, Message, TypingState


class ConversationRepositoryProtocol(Protocol):
    async def create(self, conversation: Conversation, db: AsyncSession) -> None: ...

    async def get_by_id(self, conversation_id: str, db: AsyncSession) -> Conversation | None: ...

    async def get_by_order(self, order_id: str, db: AsyncSession) -> Conversation | None: ...

    async def list_conversations(
        self,
        user_id: str | None,
        status: str | None,
        limit: int,
        offset: int,
        db: AsyncSession,
    ) -> list[Conversation]: ...

    async def update_status(
        self, conversation_id: str, status: ConversationStatus, at: datetime, db: AsyncSession
    ) -> None: ...

    async def set_read_marker(
        self, conversation_id: str, role: SenderRole, at: datetime, db: AsyncSession
    ) -> None: ...

    async def add_message(self, message: Message, db: AsyncSession) -> None:
        """Append and bump the conversation's updated_at to message.created_at."""
        ...

    async def list_messages(
        self, conversation_id: str, limit: int, db: AsyncSession
    ) -> list[Message]: ...

    async def count_unread(
        self, user_id: str | None, reader: SenderRole, db: AsyncSession
    ) -> int:
        """Unread total across conversations; ``user_id=None`` means every conversation."""
        ...


class TypingStoreProtocol(Protocol):
    async def get(self, conversation_id: str) -> TypingState | None: ...

    async def set(self, conversation_id: str, state: TypingState) -> None: ...

    async def clear(self, conversation_id: str, role: SenderRole) -> None:
        """Drop the flag only if ``role`` currently owns it."""
        ...
