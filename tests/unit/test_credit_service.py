"""CreditApplicationService against the in-memory ledger."""

import pytest

from src.ps_common.enums import LedgerEntryType
from src.ps_common.errors import InsufficientCreditsError
from src.ps_account.application.service import CreditApplicationService
from fakes import FakeCreditRepo, make_db


@pytest.fixture
def repo() -> FakeCreditRepo:
    return FakeCreditRepo()


@pytest.fixture
def service(repo: FakeCreditRepo) -> CreditApplicationService:
    return CreditApplicationService(repo=repo)


async def test_refund_credit_written_once(service, repo) -> None:
    db = make_db()
    first = await service.credit_refund(db, "user-1", 3000, "refund-1", "o-1")
    again = await service.credit_refund(db, "user-1", 3000, "refund-1", "o-1")

    assert first.id == again.id
    assert first.entry_type == LedgerEntryType.REFUND_CREDIT.value
    assert repo.balance_of("user-1") == 3000


async def test_order_payment_debits(service, repo) -> None:
    db = make_db()
    await service.adjust(db, "user-1", 5000, "Goodwill")
    entry = await service.pay_order(db, "user-1", 4500, "o-1")

    assert entry.amount == -4500
    assert entry.balance_after == 500


async def test_overdraft_rolls_back(service) -> None:
    db = make_db()
    with pytest.raises(InsufficientCreditsError):
        await service.pay_order(db, "user-1", 100, "o-1")
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()


async def test_balance_display(service) -> None:
    db = make_db()
    await service.adjust(db, "user-1", 15050, "Top-up")
    balance = await service.get_balance(db, "user-1")
    assert balance.balance == 15050
    assert balance.balance_display == "150.50 PLN"


async def test_ledger_pagination_newest_first(service) -> None:
    db = make_db()
    for amount in (100, 200, 300):
        await service.adjust(db, "user-1", amount, "Top-up")

    first = await service.list_ledger(db, "user-1", None, 2, None)
    second = await service.list_ledger(db, "user-1", first.next_cursor, 2, None)

    assert [e.amount for e in first.items] == [300, 200]
    assert first.has_more is True
    assert [e.amount for e in second.items] == [100]
    assert second.has_more is False
