"""In-memory stand-ins for repositories and external collaborators.

Each fake conforms to the matching Protocol. Repositories hand out copies so a
service that mutates an order and then fails leaves the stored row untouched,
just like a rolled-back transaction.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

from src.ps_account.application.service import CreditApplicationService
from src.ps_account.domain.models import CreditBalance, LedgerEntry
from src.ps_common.enums import (
    ConversationStatus,
    NotificationKind,
    OrderStatus,
    PaymentStatus,
    SenderRole,
)
from src.ps_common.errors import ExternalServiceUnavailableError, InsufficientCreditsError
from src.ps_conversation.application.service import ConversationService
from src.ps_conversation.domain.models import Conversation, Message, TypingState
from src.ps_order.application.service import OrderService
from src.ps_order.domain.models import Order
from src.ps_settlement.application.service import SettlementService
from src.ps_settlement.infrastructure.payment_gateway import PaymentRedirect

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

# Same rule as the conversation list query
_UNREAD_AUTHORS = {
    SenderRole.CUSTOMER: {SenderRole.STAFF, SenderRole.SYSTEM},
    SenderRole.STAFF: {SenderRole.CUSTOMER},
}


def _unread(messages: list[Message], reader: SenderRole, marker: datetime | None) -> int:
    return sum(
        1
        for m in messages
        if m.sender_role in _UNREAD_AUTHORS[reader] and (marker is None or m.created_at > marker)
    )


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def make_db() -> AsyncMock:
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


class FakeOrderRepo:
    def __init__(self, *orders: Order) -> None:
        self.rows: dict[str, Order] = {}
        for o in orders:
            self.rows[o.id] = copy.deepcopy(o)
        self.fail_update_for: set[str] = set()

    async def save(self, order: Order, db: Any) -> None:
        order.created_at = order.created_at or T0
        order.updated_at = order.updated_at or T0
        self.rows[order.id] = copy.deepcopy(order)

    async def get_by_id(self, order_id: str, db: Any) -> Order | None:
        row = self.rows.get(order_id)
        return copy.deepcopy(row) if row else None

    async def update(self, order: Order, db: Any) -> bool:
        stored = self.rows.get(order.id)
        if order.id in self.fail_update_for or stored is None or stored.version != order.version:
            return False
        order.version += 1
        self.rows[order.id] = copy.deepcopy(order)
        return True

    async def list_by_project(self, project_id: str, db: Any) -> list[Order]:
        return [
            copy.deepcopy(o)
            for o in sorted(self.rows.values(), key=lambda o: o.id)
            if o.project_id == project_id
        ]

    async def list_orders(
        self,
        user_id: str | None,
        status: str | None,
        project_id: str | None,
        limit: int,
        cursor_id: str | None,
        db: Any,
    ) -> list[Order]:
        rows = sorted(self.rows.values(), key=lambda o: o.id, reverse=True)
        rows = [
            o
            for o in rows
            if (user_id is None or o.user_id == user_id)
            and (status is None or o.status.value == status)
            and (project_id is None or o.project_id == project_id)
            and (cursor_id is None or o.id < cursor_id)
        ]
        return [copy.deepcopy(o) for o in rows[:limit]]


class FakeCreditRepo:
    def __init__(self) -> None:
        self.entries: list[LedgerEntry] = []

    def balance_of(self, user_id: str) -> int:
        return sum(e.amount for e in self.entries if e.user_id == user_id)

    async def get_balance(self, db: Any, user_id: str) -> CreditBalance:
        mine = [e for e in self.entries if e.user_id == user_id]
        return CreditBalance(user_id, sum(e.amount for e in mine), len(mine))

    async def find_by_reference(
        self, db: Any, entry_type: str, reference_id: str
    ) -> LedgerEntry | None:
        return next(
            (e for e in self.entries if e.entry_type == entry_type and e.reference_id == reference_id),
            None,
        )

    async def append_entry(
        self,
        db: Any,
        user_id: str,
        entry_type: str,
        amount: int,
        reference_type: str | None,
        reference_id: str | None,
        description: str,
    ) -> LedgerEntry:
        if reference_id is not None:
            existing = await self.find_by_reference(db, entry_type, reference_id)
            if existing is not None:
                return existing
        balance = self.balance_of(user_id)
        if balance + amount < 0:
            raise InsufficientCreditsError(-amount, balance)
        entry = LedgerEntry(
            id=len(self.entries) + 1,
            user_id=user_id,
            entry_type=entry_type,
            amount=amount,
            balance_after=balance + amount,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            created_at=T0,
        )
        self.entries.append(entry)
        return entry

    async def list_ledger_entries(
        self, db: Any, user_id: str, cursor_id: int | None, limit: int, entry_type: str | None
    ) -> list[LedgerEntry]:
        rows = [
            e
            for e in reversed(self.entries)
            if e.user_id == user_id
            and (cursor_id is None or e.id < cursor_id)
            and (entry_type is None or e.entry_type == entry_type)
        ]
        return rows[:limit]


class FakeConversationRepo:
    def __init__(self, orders: FakeOrderRepo | None = None) -> None:
        self.conversations: dict[str, Conversation] = {}
        self.messages: list[Message] = []
        self._orders = orders

    def _hydrate(self, c: Conversation) -> Conversation:
        view = copy.deepcopy(c)
        mine = [m for m in self.messages if m.conversation_id == c.id]
        view.customer_unread = _unread(mine, SenderRole.CUSTOMER, c.customer_last_read_at)
        view.staff_unread = _unread(mine, SenderRole.STAFF, c.staff_last_read_at)
        view.last_message = copy.deepcopy(mine[-1]) if mine else None
        if self._orders is not None and c.order_id in self._orders.rows:
            order = self._orders.rows[c.order_id]
            view.order_status = order.status.value
            view.order_file_name = order.file_name
            view.project_id = order.project_id
        return view

    async def create(self, conversation: Conversation, db: Any) -> None:
        conversation.created_at = conversation.updated_at = T0
        self.conversations[conversation.id] = copy.deepcopy(conversation)

    async def get_by_id(self, conversation_id: str, db: Any) -> Conversation | None:
        c = self.conversations.get(conversation_id)
        return self._hydrate(c) if c else None

    async def get_by_order(self, order_id: str, db: Any) -> Conversation | None:
        c = next((c for c in self.conversations.values() if c.order_id == order_id), None)
        return self._hydrate(c) if c else None

    async def list_conversations(
        self, user_id: str | None, status: str | None, limit: int, offset: int, db: Any
    ) -> list[Conversation]:
        rows = [
            c
            for c in self.conversations.values()
            if (user_id is None or c.user_id == user_id)
            and (status is None or c.status.value == status)
        ]
        rows.sort(key=lambda c: (c.updated_at or T0, c.id), reverse=True)
        return [self._hydrate(c) for c in rows[offset : offset + limit]]

    async def update_status(
        self, conversation_id: str, status: ConversationStatus, at: datetime, db: Any
    ) -> None:
        c = self.conversations[conversation_id]
        c.status = status
        c.updated_at = at

    async def set_read_marker(
        self, conversation_id: str, role: SenderRole, at: datetime, db: Any
    ) -> None:
        c = self.conversations[conversation_id]
        if role == SenderRole.STAFF:
            c.staff_last_read_at = max(c.staff_last_read_at or at, at)
        else:
            c.customer_last_read_at = max(c.customer_last_read_at or at, at)

    async def add_message(self, message: Message, db: Any) -> None:
        self.messages.append(copy.deepcopy(message))
        self.conversations[message.conversation_id].updated_at = message.created_at

    async def list_messages(self, conversation_id: str, limit: int, db: Any) -> list[Message]:
        mine = [m for m in self.messages if m.conversation_id == conversation_id]
        return copy.deepcopy(mine[-limit:])

    async def count_unread(self, user_id: str | None, reader: SenderRole, db: Any) -> int:
        total = 0
        for c in self.conversations.values():
            if user_id is not None and c.user_id != user_id:
                continue
            view = self._hydrate(c)
            total += view.staff_unread if reader == SenderRole.STAFF else view.customer_unread
        return total


class FakeTypingStore:
    def __init__(self) -> None:
        self.states: dict[str, TypingState] = {}

    async def get(self, conversation_id: str) -> TypingState | None:
        return self.states.get(conversation_id)

    async def set(self, conversation_id: str, state: TypingState) -> None:
        self.states[conversation_id] = state

    async def clear(self, conversation_id: str, role: SenderRole) -> None:
        current = self.states.get(conversation_id)
        if current is not None and current.role == role:
            del self.states[conversation_id]


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[NotificationKind, str, dict[str, Any]]] = []

    async def notify(
        self, kind: NotificationKind, user_id: str, order_id: str, payload: dict[str, Any]
    ) -> None:
        self.sent.append((kind, order_id, payload))

    def kinds(self) -> list[NotificationKind]:
        return [k for k, _, _ in self.sent]


class FakeGateway:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.payments: list[tuple[str, int]] = []
        self.refunds: list[tuple[str, int, str]] = []

    async def create_payment(self, order_id: str, amount: int, description: str) -> PaymentRedirect:
        if not self.available:
            raise ExternalServiceUnavailableError("payment_gateway", "connection refused")
        self.payments.append((order_id, amount))
        return PaymentRedirect(redirect_url=f"https://pay.example/{order_id}", transaction_ref="tx-1")

    async def request_refund(self, order_id: str, amount: int, refund_id: str) -> None:
        if not self.available:
            raise ExternalServiceUnavailableError("payment_gateway", "connection refused")
        self.refunds.append((order_id, amount, refund_id))


class FakeConfirmations:
    def __init__(self) -> None:
        self.seen: set[str] = set()

    async def record(self, transaction_id: str, order_id: str, amount: int, db: Any) -> bool:
        if transaction_id in self.seen:
            return False
        self.seen.add(transaction_id)
        return True


def make_order(
    order_id: str,
    price: int = 10000,
    *,
    user_id: str = "user-1",
    paid: bool = True,
    status: OrderStatus | None = None,
    project_id: str | None = None,
) -> Order:
    return Order(
        id=order_id,
        user_id=user_id,
        file_name=f"{order_id}.stl",
        price=price,
        status=status or OrderStatus.SUBMITTED,
        payment_status=PaymentStatus.PAID if paid else PaymentStatus.ON_HOLD,
        paid_amount=price if paid else 0,
        project_id=project_id,
        project_name="Prototype" if project_id else None,
        created_at=T0,
        updated_at=T0,
    )


class World:
    """Every service wired to in-memory collaborators sharing one fake clock."""

    def __init__(self, *orders: Order, gateway_available: bool = True) -> None:
        self.clock = FakeClock()
        self.db = make_db()
        self.orders = FakeOrderRepo(*orders)
        self.ledger = FakeCreditRepo()
        self.conv_repo = FakeConversationRepo(self.orders)
        self.typing = FakeTypingStore()
        self.notifier = RecordingNotifier()
        self.gateway = FakeGateway(gateway_available)
        self.confirmations = FakeConfirmations()
        self.credits = CreditApplicationService(repo=self.ledger)
        self.conversations = ConversationService(
            self.conv_repo, self.typing, self.orders, clock=self.clock, typing_window=3.0
        )
        self.order_service = OrderService(
            self.orders, self.credits, self.conversations, self.gateway, self.notifier
        )
        self.settlement = SettlementService(
            self.orders,
            self.credits,
            self.conversations,
            self.gateway,
            self.notifier,
            self.confirmations,
            clock=self.clock,
        )

    def order(self, order_id: str) -> Order:
        return self.orders.rows[order_id]
