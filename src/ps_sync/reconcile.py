"""Pull-and-replace reconciliation.

Every pull replaces the local list wholesale; nothing is merged. Each request
is stamped with a sequence number when it is issued, and a response whose
sequence is older than the last one applied for the same channel is dropped,
so a slow response can never overwrite a fresher one. Unread and typing
indicators are read from the latest snapshot every time they are asked for.

``apply_event`` routes a push payload through the same functions, so a push
transport can replace polling without changing any of the rules.
"""
import itertools
from dataclasses import dataclass, field
from typing import Any

from src.ps_sync.snapshot import (
    ConversationSnapshot,
    MessageSnapshot,
    OrderSnapshot,
    PendingMessage,
)

CONVERSATIONS = "conversations"
ORDERS = "orders"


def messages_channel(conversation_id: str) -> str:
    return f"messages:{conversation_id}"


@dataclass
class SyncState:
    conversations: list[ConversationSnapshot] = field(default_factory=list)
    orders: list[OrderSnapshot] = field(default_factory=list)
    messages: dict[str, list[MessageSnapshot]] = field(default_factory=dict)
    pending: dict[str, list[PendingMessage]] = field(default_factory=dict)
    # channel -> sequence of the last applied response
    applied: dict[str, int] = field(default_factory=dict)
    # conversation id -> client clock when its snapshot arrived
    received_at: dict[str, float] = field(default_factory=dict)
    _seq: itertools.count = field(default_factory=lambda: itertools.count(1), repr=False)

    def next_sequence(self) -> int:
        return next(self._seq)


def _accept(state: SyncState, channel: str, seq: int) -> bool:
    if seq <= state.applied.get(channel, 0):
        return False
    state.applied[channel] = seq
    return True


def apply_conversations(
    state: SyncState, seq: int, conversations: list[ConversationSnapshot], now: float
) -> bool:
    if not _accept(state, CONVERSATIONS, seq):
        return False
    state.conversations = list(conversations)
    for c in conversations:
        state.received_at[c.id] = now
    return True


def apply_orders(state: SyncState, seq: int, orders: list[OrderSnapshot]) -> bool:
    if not _accept(state, ORDERS, seq):
        return False
    state.orders = list(orders)
    return True


def apply_messages(
    state: SyncState,
    seq: int,
    conversation: ConversationSnapshot,
    messages: list[MessageSnapshot],
    now: float,
) -> bool:
    if not _accept(state, messages_channel(conversation.id), seq):
        return False
    state.messages[conversation.id] = list(messages)
    state.conversations = [
        conversation if c.id == conversation.id else c for c in state.conversations
    ]
    if all(c.id != conversation.id for c in state.conversations):
        state.conversations.append(conversation)
    state.received_at[conversation.id] = now

    # Optimistic messages the server has now returned are dropped
    confirmed = {m.id for m in messages}
    pending = [p for p in state.pending.get(conversation.id, []) if p.server_id not in confirmed]
    if pending:
        state.pending[conversation.id] = pending
    else:
        state.pending.pop(conversation.id, None)
    return True


def add_pending(state: SyncState, message: PendingMessage) -> None:
    state.pending.setdefault(message.conversation_id, []).append(message)


def visible_messages(
    state: SyncState, conversation_id: str
) -> list[MessageSnapshot | PendingMessage]:
    """Server messages followed by this client's not-yet-confirmed ones."""
    return [*state.messages.get(conversation_id, []), *state.pending.get(conversation_id, [])]


def find_conversation(state: SyncState, conversation_id: str) -> ConversationSnapshot | None:
    return next((c for c in state.conversations if c.id == conversation_id), None)


def unread_count(state: SyncState, conversation_id: str) -> int:
    c = find_conversation(state, conversation_id)
    return c.unread_count if c else 0


def total_unread(state: SyncState) -> int:
    return sum(c.unread_count for c in state.conversations)


def counterpart_typing(
    state: SyncState, conversation_id: str, now: float, window_seconds: float
) -> bool:
    """Typing as of the last snapshot, and only while that snapshot is fresh."""
    c = find_conversation(state, conversation_id)
    if c is None or not c.counterpart_typing:
        return False
    received = state.received_at.get(conversation_id)
    return received is not None and now - received < window_seconds


def apply_event(state: SyncState, event: dict[str, Any], now: float) -> bool:
    """Apply a ``{"channel", "seq", "data"}`` payload from any transport."""
    channel = event["channel"]
    seq = int(event["seq"])
    data = event["data"]
    if channel == CONVERSATIONS:
        return apply_conversations(
            state, seq, [ConversationSnapshot.from_api(c) for c in data], now
        )
    if channel == ORDERS:
        return apply_orders(state, seq, [OrderSnapshot.from_api(o) for o in data])
    if channel.startswith("messages:"):
        return apply_messages(
            state,
            seq,
            ConversationSnapshot.from_api(data["conversation"]),
            [MessageSnapshot.from_api(m) for m in data["messages"]],
            now,
        )
    raise ValueError(f"Unknown sync channel: {channel}")
