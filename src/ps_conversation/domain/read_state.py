"""Read / unread / typing derivations.

Everything here is a pure function of one snapshot plus "now", so indicators
are always re-derived from the latest data and never accumulated. Unread
counters are computed by the conversation list query itself.
"""
from datetime import datetime

from src.ps_common.datetime_utils import seconds_since
from src.ps_common.enums import ConversationStatus, SenderRole
from src.ps_common.errors import (
    ConversationClosedError,
    InvalidConversationTransitionError,
)
from src.ps_conversation.domain.models import Conversation, Message, TypingState

_STATUS_RANK: dict[ConversationStatus, int] = {
    ConversationStatus.OPEN: 0,
    ConversationStatus.IN_PROGRESS: 1,
    ConversationStatus.RESOLVED: 2,
    ConversationStatus.CLOSED: 3,
}


def is_read_by_recipient(message: Message, conversation: Conversation) -> bool:
    recipient = SenderRole.STAFF if message.sender_role == SenderRole.CUSTOMER else SenderRole.CUSTOMER
    marker = conversation.last_read_at(recipient)
    return marker is not None and message.created_at <= marker


def is_typing_active(state: TypingState | None, now: datetime, window_seconds: float) -> bool:
    """A heartbeat older than the staleness window reads as not typing."""
    if state is None:
        return False
    return seconds_since(state.heartbeat_at, now) < window_seconds


def counterpart_typing(
    state: TypingState | None, viewer: SenderRole, now: datetime, window_seconds: float
) -> bool:
    """Is the *other* party typing, as seen by ``viewer``?"""
    if state is None or state.role == viewer:
        return False
    return is_typing_active(state, now, window_seconds)


def check_status_transition(current: ConversationStatus, target: ConversationStatus) -> None:
    """Conversations only move forward: open → in_progress → resolved → closed."""
    if _STATUS_RANK[target] <= _STATUS_RANK[current]:
        raise InvalidConversationTransitionError(current.value, target.value)


def has_reached(current: ConversationStatus, target: ConversationStatus) -> bool:
    return _STATUS_RANK[current] >= _STATUS_RANK[target]


def check_accepts_message(conversation: Conversation, sender: SenderRole) -> None:
    """Closed threads take one last system notice but nothing from people."""
    if conversation.status == ConversationStatus.CLOSED and sender != SenderRole.SYSTEM:
        raise ConversationClosedError(conversation.id)
