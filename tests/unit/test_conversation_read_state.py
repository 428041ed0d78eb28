"""Pure read/unread/typing derivations."""

from datetime import timedelta

import pytest

from src.ps_common.enums import ConversationStatus, SenderRole
from src.ps_common.errors import ConversationClosedError, InvalidConversationTransitionError
from src.ps_conversation.domain.models import Conversation, Message, TypingState
from src.ps_conversation.domain.read_state import (
    check_accepts_message,
    check_status_transition,
    counterpart_typing,
    has_reached,
    is_read_by_recipient,
    is_typing_active,
)
from fakes import T0


def _msg(i: int, role: SenderRole, seconds: int) -> Message:
    return Message(f"m-{i}", "c-1", role, f"body {i}", T0 + timedelta(seconds=seconds))


MESSAGES = [
    _msg(1, SenderRole.CUSTOMER, 0),
    _msg(2, SenderRole.STAFF, 10),
    _msg(3, SenderRole.SYSTEM, 20),
    _msg(4, SenderRole.CUSTOMER, 30),
]


class TestIsRead:
    def test_customer_message_read_once_staff_marker_passes_it(self) -> None:
        conv = Conversation("c-1", "o-1", "user-1", "s", staff_last_read_at=T0 + timedelta(seconds=5))
        assert is_read_by_recipient(MESSAGES[0], conv) is True
        assert is_read_by_recipient(MESSAGES[3], conv) is False

    def test_staff_message_uses_customer_marker(self) -> None:
        conv = Conversation("c-1", "o-1", "user-1", "s", staff_last_read_at=T0 + timedelta(hours=1))
        assert is_read_by_recipient(MESSAGES[1], conv) is False


class TestTyping:
    def test_fresh_heartbeat_is_active(self) -> None:
        state = TypingState(SenderRole.STAFF, T0)
        assert is_typing_active(state, T0 + timedelta(seconds=2.9), 3.0) is True

    def test_heartbeat_at_window_is_stale(self) -> None:
        state = TypingState(SenderRole.STAFF, T0)
        assert is_typing_active(state, T0 + timedelta(seconds=3), 3.0) is False

    def test_own_typing_is_not_reported(self) -> None:
        state = TypingState(SenderRole.STAFF, T0)
        assert counterpart_typing(state, SenderRole.STAFF, T0, 3.0) is False
        assert counterpart_typing(state, SenderRole.CUSTOMER, T0, 3.0) is True

    def test_no_state(self) -> None:
        assert counterpart_typing(None, SenderRole.CUSTOMER, T0, 3.0) is False


class TestStatus:
    def test_forward_moves_allowed(self) -> None:
        check_status_transition(ConversationStatus.OPEN, ConversationStatus.RESOLVED)
        check_status_transition(ConversationStatus.RESOLVED, ConversationStatus.CLOSED)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (ConversationStatus.CLOSED, ConversationStatus.OPEN),
            (ConversationStatus.RESOLVED, ConversationStatus.IN_PROGRESS),
            (ConversationStatus.OPEN, ConversationStatus.OPEN),
        ],
    )
    def test_backward_or_same_rejected(self, current, target) -> None:
        with pytest.raises(InvalidConversationTransitionError):
            check_status_transition(current, target)

    def test_has_reached(self) -> None:
        assert has_reached(ConversationStatus.CLOSED, ConversationStatus.RESOLVED)
        assert not has_reached(ConversationStatus.IN_PROGRESS, ConversationStatus.RESOLVED)

    def test_closed_accepts_only_system(self) -> None:
        conv = Conversation("c-1", "o-1", "user-1", "s", status=ConversationStatus.CLOSED)
        check_accepts_message(conv, SenderRole.SYSTEM)
        with pytest.raises(ConversationClosedError):
            check_accepts_message(conv, SenderRole.CUSTOMER)
