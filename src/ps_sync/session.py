"""SyncSession — the client's cooperative polling loop.

One asyncio task polls the conversation list every ``conversation_interval``
seconds (plus the open conversation's messages) and the order list every
``order_interval`` seconds. Failed pulls are logged and retried on the next
tick; the previous snapshot stays in place meanwhile.
"""
import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from config.settings import settings
from src.ps_common.errors import AppError
from src.ps_sync import reconcile
from src.ps_sync.client import SupportApiClient
from src.ps_sync.reconcile import SyncState
from src.ps_sync.snapshot import PendingMessage
from src.ps_sync.typing_notifier import TypingNotifier

logger = logging.getLogger(__name__)


class SyncSession:
    def __init__(
        self,
        client: SupportApiClient,
        conversation_interval: float | None = None,
        order_interval: float | None = None,
        typing_window: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._conversation_interval = conversation_interval or settings.CONVERSATION_POLL_SECONDS
        self._order_interval = order_interval or settings.ORDER_POLL_SECONDS
        self._typing_window = typing_window or settings.TYPING_STALENESS_SECONDS
        self._clock = clock
        self.state = SyncState()
        self.open_conversation_id: str | None = None
        self.typing: TypingNotifier | None = None

    # ------------------------------------------------------------------
    # Pulls
    # ------------------------------------------------------------------

    async def poll_conversations(self) -> bool:
        seq = self.state.next_sequence()
        conversations = await self._client.list_conversations()
        return reconcile.apply_conversations(self.state, seq, conversations, self._clock())

    async def poll_orders(self) -> bool:
        seq = self.state.next_sequence()
        orders = await self._client.list_orders()
        return reconcile.apply_orders(self.state, seq, orders)

    async def poll_messages(self) -> bool:
        conversation_id = self.open_conversation_id
        if conversation_id is None:
            return False
        seq = self.state.next_sequence()
        conversation, messages = await self._client.list_messages(conversation_id)
        return reconcile.apply_messages(self.state, seq, conversation, messages, self._clock())

    async def _safely(self, label: str, pull: Callable[[], Any]) -> None:
        try:
            await pull()
        except AppError as exc:
            logger.warning("Sync %s failed: %s", label, exc.message)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(self, stop: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        next_conversations = next_orders = loop.time()
        while not stop.is_set():
            now = loop.time()
            if now >= next_conversations:
                await self._safely("conversations", self.poll_conversations)
                await self._safely("messages", self.poll_messages)
                next_conversations = now + self._conversation_interval
            if now >= next_orders:
                await self._safely("orders", self.poll_orders)
                next_orders = now + self._order_interval
            delay = max(0.0, min(next_conversations, next_orders) - loop.time())
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        if self.typing is not None:
            await self.typing.stop()

    # ------------------------------------------------------------------
    # Conversation actions
    # ------------------------------------------------------------------

    async def open_conversation(self, conversation_id: str) -> None:
        if self.typing is not None:
            await self.typing.stop()
        self.open_conversation_id = conversation_id
        self.typing = TypingNotifier(
            lambda is_typing: self._client.set_typing(conversation_id, is_typing)
        )
        await self._client.mark_read(conversation_id)
        await self._safely("messages", self.poll_messages)

    async def close_conversation(self) -> None:
        if self.typing is not None:
            await self.typing.stop()
        self.typing = None
        self.open_conversation_id = None

    async def mark_read(self) -> None:
        if self.open_conversation_id is not None:
            await self._client.mark_read(self.open_conversation_id)

    async def send_message(self, body: str, attachments: list[dict[str, Any]] | None = None) -> PendingMessage:
        """Show the message at once; the next pull replaces it with the stored copy."""
        if self.open_conversation_id is None:
            raise RuntimeError("No conversation is open")
        pending = PendingMessage(
            local_id=uuid.uuid4().hex,
            conversation_id=self.open_conversation_id,
            body=body,
            attachments=attachments or [],
        )
        reconcile.add_pending(self.state, pending)
        if self.typing is not None:
            await self.typing.stop()
        try:
            stored = await self._client.send_message(pending.conversation_id, body, attachments)
        except AppError as exc:
            pending.failed = True
            logger.warning("Message not sent to %s: %s", pending.conversation_id, exc.message)
            return pending
        pending.server_id = stored.id
        return pending

    # ------------------------------------------------------------------
    # Derived indicators (always from the latest snapshot)
    # ------------------------------------------------------------------

    def unread_count(self, conversation_id: str) -> int:
        return reconcile.unread_count(self.state, conversation_id)

    def total_unread(self) -> int:
        return reconcile.total_unread(self.state)

    def counterpart_typing(self, conversation_id: str) -> bool:
        return reconcile.counterpart_typing(
            self.state, conversation_id, self._clock(), self._typing_window
        )
