"""CreditRepository — concrete implementation of CreditRepositoryProtocol.

There is no balance column: the balance is SUM(amount) over ledger_entries.
Appends for one user are serialized with a transaction-scoped advisory lock so
balance_after stays a true running total.

Transaction ownership: The CALLER (application service) commits or rolls back.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_account.domain.models import CreditBalance, LedgerEntry
from src.ps_common.errors import InsufficientCreditsError, InternalError

_LOCK_USER_SQL = text("SELECT pg_advisory_xact_lock(hashtext(:user_id))")

_BALANCE_SQL = text("""
    SELECT COALESCE(SUM(amount), 0) AS balance, COUNT(*) AS entry_count
    FROM ledger_entries
    WHERE user_id = :user_id
""")

_INSERT_LEDGER_SQL = text("""
    INSERT INTO ledger_entries
        (user_id, entry_type, amount, balance_after,
         reference_type, reference_id, description)
    VALUES
        (:user_id, :entry_type, :amount, :balance_after,
         :reference_type, :reference_id, :description)
    ON CONFLICT (entry_type, reference_id) WHERE reference_id IS NOT NULL DO NOTHING
    RETURNING id, user_id, entry_type, amount, balance_after,
              reference_type, reference_id, description, created_at
""")

_FIND_BY_REFERENCE_SQL = text("""
    SELECT id, user_id, entry_type, amount, balance_after,
           reference_type, reference_id, description, created_at
    FROM ledger_entries
    WHERE entry_type = :entry_type AND reference_id = :reference_id
""")

_LIST_LEDGER_SQL = text("""
    SELECT id, user_id, entry_type, amount, balance_after,
           reference_type, reference_id, description, created_at
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = :entry_type)
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_ledger(row: Any) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        user_id=row.user_id,
        entry_type=row.entry_type,
        amount=row.amount,
        balance_after=row.balance_after,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        description=row.description,
        created_at=row.created_at,
    )


class CreditRepository:
    """Concrete repository — ledger rows are never updated or deleted."""

    async def get_balance(self, db: AsyncSession, user_id: str) -> CreditBalance:
        row: Any = (await db.execute(_BALANCE_SQL, {"user_id": user_id})).fetchone()
        return CreditBalance(
            user_id=user_id,
            balance=int(row.balance) if row else 0,
            entry_count=int(row.entry_count) if row else 0,
        )

    async def find_by_reference(
        self, db: AsyncSession, entry_type: str, reference_id: str
    ) -> LedgerEntry | None:
        result = await db.execute(
            _FIND_BY_REFERENCE_SQL, {"entry_type": entry_type, "reference_id": reference_id}
        )
        row = result.fetchone()
        return _row_to_ledger(row) if row else None

    async def append_entry(
        self,
        db: AsyncSession,
        user_id: str,
        entry_type: str,
        amount: int,
        reference_type: str | None,
        reference_id: str | None,
        description: str,
    ) -> LedgerEntry:
        await db.execute(_LOCK_USER_SQL, {"user_id": user_id})
        current = await self.get_balance(db, user_id)
        balance_after = current.balance + amount
        if balance_after < 0:
            raise InsufficientCreditsError(-amount, current.balance)

        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": user_id,
                "entry_type": entry_type,
                "amount": amount,
                "balance_after": balance_after,
                "reference_type": reference_type,
                "reference_id": reference_id,
                "description": description,
            },
        )
        row = result.fetchone()
        if row is not None:
            return _row_to_ledger(row)
        if reference_id is None:
            raise InternalError("Ledger insert returned no rows — this should never happen")
        existing = await self.find_by_reference(db, entry_type, reference_id)
        if existing is None:
            raise InternalError(f"Ledger entry {entry_type}/{reference_id} vanished after conflict")
        return existing

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "limit": limit,
            },
        )
        return [_row_to_ledger(row) for row in result.fetchall()]
