"""SyncSession and TypingNotifier against a scripted API client."""

import asyncio

from src.ps_common.errors import AppError, ExternalServiceUnavailableError
from src.ps_sync.session import SyncSession
from src.ps_sync.snapshot import ConversationSnapshot, MessageSnapshot, OrderSnapshot
from src.ps_sync.typing_notifier import TypingNotifier


def conv(unread: int = 0, typing: bool = False) -> ConversationSnapshot:
    return ConversationSnapshot("c-1", "o-1", "Order", "open", unread, typing)


def msg(mid: str) -> MessageSnapshot:
    return MessageSnapshot(mid, "c-1", "customer", "hi", "2026-03-01T12:00:00+00:00")


class ScriptedClient:
    def __init__(self) -> None:
        self.conversations = [conv(unread=2)]
        self.messages: list[MessageSnapshot] = []
        self.orders = [OrderSnapshot("o-1", "printing", "paid", 5000)]
        self.calls: list[tuple] = []
        self.fail_send = False
        self.fail_list = False

    async def list_conversations(self) -> list[ConversationSnapshot]:
        self.calls.append(("list_conversations",))
        if self.fail_list:
            raise ExternalServiceUnavailableError("support_api", "timeout")
        return list(self.conversations)

    async def list_messages(self, conversation_id: str):
        self.calls.append(("list_messages", conversation_id))
        return self.conversations[0], list(self.messages)

    async def list_orders(self, limit: int = 100) -> list[OrderSnapshot]:
        self.calls.append(("list_orders",))
        return list(self.orders)

    async def send_message(self, conversation_id: str, body: str, attachments=None) -> MessageSnapshot:
        self.calls.append(("send_message", conversation_id, body))
        if self.fail_send:
            raise AppError(3002, "Conversation c-1 is closed", 422)
        stored = msg(f"m-{len(self.messages) + 1}")
        self.messages.append(stored)
        return stored

    async def mark_read(self, conversation_id: str) -> ConversationSnapshot:
        self.calls.append(("mark_read", conversation_id))
        self.conversations = [conv(unread=0)]
        return self.conversations[0]

    async def set_typing(self, conversation_id: str, is_typing: bool) -> None:
        self.calls.append(("set_typing", conversation_id, is_typing))


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _session(client: ScriptedClient, clock: Clock | None = None) -> SyncSession:
    return SyncSession(client, conversation_interval=0.01, order_interval=0.02, typing_window=3.0,
                       clock=clock or Clock())


class TestSession:
    async def test_open_marks_read_and_pulls(self) -> None:
        client = ScriptedClient()
        session = _session(client)
        await session.poll_conversations()
        assert session.total_unread() == 2

        await session.open_conversation("c-1")

        assert ("mark_read", "c-1") in client.calls
        assert session.unread_count("c-1") == 0

    async def test_send_message_is_optimistic(self) -> None:
        client = ScriptedClient()
        session = _session(client)
        await session.open_conversation("c-1")

        pending = await session.send_message("Is it ready?")

        assert pending.server_id == "m-1"
        assert session.state.pending["c-1"] == [pending]
        await session.poll_messages()
        assert "c-1" not in session.state.pending
        assert [m.id for m in session.state.messages["c-1"]] == ["m-1"]

    async def test_failed_send_stays_visible(self) -> None:
        client = ScriptedClient()
        client.fail_send = True
        session = _session(client)
        await session.open_conversation("c-1")

        pending = await session.send_message("Hello?")

        assert pending.failed is True
        await session.poll_messages()
        assert session.state.pending["c-1"] == [pending]

    async def test_typing_derived_from_snapshot_age(self) -> None:
        client = ScriptedClient()
        client.conversations = [conv(typing=True)]
        clock = Clock()
        session = _session(client, clock)
        await session.poll_conversations()

        assert session.counterpart_typing("c-1")
        clock.now = 3.0
        assert not session.counterpart_typing("c-1")

    async def test_run_polls_and_survives_failures(self) -> None:
        client = ScriptedClient()
        client.fail_list = True
        session = _session(client)
        stop = asyncio.Event()

        task = asyncio.create_task(session.run(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert client.calls.count(("list_conversations",)) >= 2
        assert ("list_orders",) in client.calls
        assert session.state.orders[0].status == "printing"
        assert session.state.conversations == []


class TestTypingNotifier:
    async def test_heartbeat_throttles_repeats(self) -> None:
        sent: list[bool] = []

        async def send(flag: bool) -> None:
            sent.append(flag)

        clock = Clock()
        notifier = TypingNotifier(send, idle_timeout=10.0, heartbeat=1.5, clock=clock)

        await notifier.keystroke()
        clock.now = 1.0
        await notifier.keystroke()
        clock.now = 1.6
        await notifier.keystroke()
        await notifier.stop()

        assert sent == [True, True, False]

    async def test_idle_timeout_sends_false(self) -> None:
        sent: list[bool] = []

        async def send(flag: bool) -> None:
            sent.append(flag)

        notifier = TypingNotifier(send, idle_timeout=0.01)
        await notifier.keystroke()
        await asyncio.sleep(0.05)

        assert sent == [True, False]
        assert notifier.active is False

    async def test_delivery_failure_is_swallowed(self) -> None:
        async def send(flag: bool) -> None:
            raise ExternalServiceUnavailableError("support_api")

        notifier = TypingNotifier(send, idle_timeout=10.0)
        await notifier.keystroke()
        await notifier.stop()
        assert notifier.active is False
