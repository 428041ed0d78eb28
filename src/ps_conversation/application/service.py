"""ConversationService — support threads bound to orders.

Read markers and status live in PostgreSQL; typing flags live in Redis. Each
public mutation commits on its own so order and settlement flows can treat the
conversation update as an independent, retryable step.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ps_common.datetime_utils import utc_now
from src.ps_common.enums import ConversationStatus, SenderRole
from src.ps_common.errors import (
    ConversationClosedError,
    ConversationNotFoundError,
    OrderNotFoundError,
)
from src.ps_common.id_generator import generate_id
from src.ps_conversation.application.schemas import (
    ConversationView,
    MessagesResponse,
    MessageView,
)
from src.ps_conversation.domain.models import Conversation, Message, TypingState, Viewer
from src.ps_conversation.domain.read_state import (
    check_accepts_message,
    check_status_transition,
    counterpart_typing,
    has_reached,
)
from src.ps_conversation.domain.repository import (
    ConversationRepositoryProtocol,
    TypingStoreProtocol,
)
from src.ps_conversation.infrastructure.persistence import ConversationRepository
from src.ps_conversation.infrastructure.typing_store import RedisTypingStore
from src.ps_order.domain.repository import OrderRepositoryProtocol
from src.ps_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(
        self,
        repo: ConversationRepositoryProtocol | None = None,
        typing_store: TypingStoreProtocol | None = None,
        order_repo: OrderRepositoryProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
        typing_window: float | None = None,
    ) -> None:
        self._repo: ConversationRepositoryProtocol = repo or ConversationRepository()
        self._typing: TypingStoreProtocol = typing_store or RedisTypingStore()
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._clock = clock
        self._typing_window = (
            typing_window if typing_window is not None else settings.TYPING_STALENESS_SECONDS
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _load(self, db: AsyncSession, viewer: Viewer | None, conversation_id: str) -> Conversation:
        conversation = await self._repo.get_by_id(conversation_id, db)
        # Customers cannot probe other customers' threads
        if conversation is None or (
            viewer is not None and not viewer.is_staff and conversation.user_id != viewer.user_id
        ):
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def _view(self, conversation: Conversation, viewer: Viewer) -> ConversationView:
        state = await self._typing.get(conversation.id)
        typing = counterpart_typing(state, viewer.role, self._clock(), self._typing_window)
        return ConversationView.build(conversation, viewer, typing)

    async def get_conversation(
        self, db: AsyncSession, viewer: Viewer, conversation_id: str
    ) -> ConversationView:
        return await self._view(await self._load(db, viewer, conversation_id), viewer)

    async def list_conversations(
        self,
        db: AsyncSession,
        viewer: Viewer,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ConversationView]:
        user_filter = None if viewer.is_staff else viewer.user_id
        conversations = await self._repo.list_conversations(user_filter, status, limit, offset, db)
        return [await self._view(c, viewer) for c in conversations]

    async def list_messages(
        self, db: AsyncSession, viewer: Viewer, conversation_id: str, limit: int = 200
    ) -> MessagesResponse:
        conversation = await self._load(db, viewer, conversation_id)
        messages = await self._repo.list_messages(conversation_id, limit, db)
        return MessagesResponse(
            conversation=await self._view(conversation, viewer),
            messages=[MessageView.from_domain(m, conversation) for m in messages],
        )

    async def total_unread(self, db: AsyncSession, viewer: Viewer) -> int:
        user_filter = None if viewer.is_staff else viewer.user_id
        return await self._repo.count_unread(user_filter, viewer.role, db)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def get_or_create(
        self, db: AsyncSession, viewer: Viewer, order_id: str, subject: str | None = None
    ) -> ConversationView:
        """Return the order's conversation, opening one on first contact."""
        order = await self._orders.get_by_id(order_id, db)
        if order is None or (not viewer.is_staff and order.user_id != viewer.user_id):
            raise OrderNotFoundError(order_id)

        existing = await self._repo.get_by_order(order_id, db)
        if existing is not None:
            return await self._view(existing, viewer)

        conversation = Conversation(
            id=generate_id(),
            order_id=order_id,
            user_id=order.user_id,
            subject=subject or f"Order {order.file_name}",
        )
        try:
            await self._repo.create(conversation, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Conversation %s opened for order %s", conversation.id, order_id)
        created = await self._repo.get_by_id(conversation.id, db)
        return await self._view(created or conversation, viewer)

    async def post_message(
        self,
        db: AsyncSession,
        viewer: Viewer,
        conversation_id: str,
        body: str,
        attachments: list[dict] | None = None,
    ) -> MessageView:
        conversation = await self._load(db, viewer, conversation_id)
        message = await self._append(
            db, conversation, viewer.role, viewer.user_id, body, attachments or []
        )
        await self._typing.clear(conversation_id, viewer.role)
        return MessageView.from_domain(message, conversation)

    async def _append(
        self,
        db: AsyncSession,
        conversation: Conversation,
        role: SenderRole,
        sender_id: str | None,
        body: str,
        attachments: list[dict],
        new_status: ConversationStatus | None = None,
    ) -> Message:
        """Store one message; ``new_status`` lands in the same commit."""
        check_accepts_message(conversation, role)
        now = self._clock()
        message = Message(
            id=generate_id(),
            conversation_id=conversation.id,
            sender_role=role,
            sender_id=sender_id,
            body=body,
            attachments=attachments,
            created_at=now,
        )
        try:
            if new_status is not None:
                await self._repo.update_status(conversation.id, new_status, now, db)
            await self._repo.add_message(message, db)
            if role == SenderRole.CUSTOMER and conversation.status == ConversationStatus.OPEN:
                await self._repo.update_status(
                    conversation.id, ConversationStatus.IN_PROGRESS, now, db
                )
                conversation.status = ConversationStatus.IN_PROGRESS
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        conversation.updated_at = now
        logger.debug("Message %s (%s) in conversation %s", message.id, role.value, conversation.id)
        return message

    async def mark_read(
        self, db: AsyncSession, viewer: Viewer, conversation_id: str
    ) -> ConversationView:
        await self._load(db, viewer, conversation_id)
        try:
            await self._repo.set_read_marker(conversation_id, viewer.role, self._clock(), db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return await self.get_conversation(db, viewer, conversation_id)

    async def set_typing(
        self, db: AsyncSession, viewer: Viewer, conversation_id: str, is_typing: bool
    ) -> None:
        conversation = await self._load(db, viewer, conversation_id)
        if not is_typing:
            await self._typing.clear(conversation_id, viewer.role)
            return
        if conversation.status == ConversationStatus.CLOSED:
            raise ConversationClosedError(conversation_id)
        await self._typing.set(conversation_id, TypingState(viewer.role, self._clock()))

    async def update_status(
        self, db: AsyncSession, viewer: Viewer, conversation_id: str, target: ConversationStatus
    ) -> ConversationView:
        conversation = await self._load(db, viewer, conversation_id)
        check_status_transition(conversation.status, target)
        try:
            await self._repo.update_status(conversation_id, target, self._clock(), db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Conversation %s: %s -> %s", conversation_id, conversation.status.value, target.value
        )
        return await self.get_conversation(db, viewer, conversation_id)

    async def apply_order_outcome(
        self, db: AsyncSession, order_id: str, target: ConversationStatus, notice: str
    ) -> bool:
        """Move the order's conversation forward to ``target`` with a system notice.

        No-op (returns False) when the order has no conversation or it has already
        reached ``target``, which makes the step safe to repeat.
        """
        conversation = await self._repo.get_by_order(order_id, db)
        if conversation is None or has_reached(conversation.status, target):
            return False
        await self._append(db, conversation, SenderRole.SYSTEM, None, notice, [], new_status=target)
        conversation.status = target
        logger.info("Conversation %s -> %s for order %s", conversation.id, target.value, order_id)
        return True

    async def close_for_order(self, db: AsyncSession, order_id: str, notice: str) -> bool:
        return await self.apply_order_outcome(db, order_id, ConversationStatus.CLOSED, notice)
