"""CreditApplicationService — store-credit balance and ledger.

Credits and debits commit on their own; the settlement engine relies on that to
make "ledger entry written" a durable, checkable step.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_account.application.schemas import (
    BalanceResponse,
    LedgerEntryItem,
    LedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.ps_account.domain.models import LedgerEntry
from src.ps_account.domain.repository import CreditRepositoryProtocol
from src.ps_account.infrastructure.persistence import CreditRepository
from src.ps_common.enums import LedgerEntryType

logger = logging.getLogger(__name__)


class CreditApplicationService:
    def __init__(self, repo: CreditRepositoryProtocol | None = None) -> None:
        self._repo: CreditRepositoryProtocol = repo or CreditRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        balance = await self._repo.get_balance(db, user_id)
        return BalanceResponse.from_minor(user_id, balance.balance)

    async def find_refund_credit(self, db: AsyncSession, refund_id: str) -> LedgerEntry | None:
        return await self._repo.find_by_reference(
            db, LedgerEntryType.REFUND_CREDIT.value, refund_id
        )

    async def credit_refund(
        self, db: AsyncSession, user_id: str, amount: int, refund_id: str, order_id: str
    ) -> LedgerEntry:
        """Write the single REFUND_CREDIT entry for ``refund_id`` (no-op if it exists)."""
        existing = await self.find_refund_credit(db, refund_id)
        if existing is not None:
            logger.info("Refund %s already credited (entry %s)", refund_id, existing.id)
            return existing
        return await self._append(
            db,
            user_id,
            LedgerEntryType.REFUND_CREDIT,
            amount,
            "REFUND",
            refund_id,
            f"Refund for order {order_id}",
        )

    async def pay_order(
        self, db: AsyncSession, user_id: str, amount: int, order_id: str
    ) -> LedgerEntry:
        return await self._append(
            db,
            user_id,
            LedgerEntryType.ORDER_PAYMENT,
            -amount,
            "ORDER",
            order_id,
            f"Payment for order {order_id}",
        )

    async def adjust(
        self, db: AsyncSession, user_id: str, amount: int, description: str
    ) -> LedgerEntry:
        return await self._append(
            db, user_id, LedgerEntryType.ADMIN_ADJUSTMENT, amount, None, None, description
        )

    async def _append(
        self,
        db: AsyncSession,
        user_id: str,
        entry_type: LedgerEntryType,
        amount: int,
        reference_type: str | None,
        reference_id: str | None,
        description: str,
    ) -> LedgerEntry:
        try:
            entry = await self._repo.append_entry(
                db, user_id, entry_type.value, amount, reference_type, reference_id, description
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Ledger %s %+d for user %s, balance now %d",
            entry_type.value,
            amount,
            user_id,
            entry.balance_after,
        )
        return entry

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_ledger_entries(
            db, user_id, cursor_id, limit + 1, entry_type
        )
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            items=[LedgerEntryItem.from_domain(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
