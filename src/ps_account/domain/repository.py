"""Repository Protocol — dependency inversion for testability.

Unit tests inject a fake or mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_account.domain.models import CreditBalance, LedgerEntry


class CreditRepositoryProtocol(Protocol):
    async def get_balance(self, db: AsyncSession, user_id: str) -> CreditBalance: ...

    async def find_by_reference(
        self, db: AsyncSession, entry_type: str, reference_id: str
    ) -> LedgerEntry | None: ...

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
        """Insert one entry. Debits (amount < 0) fail with InsufficientCreditsError
        when the balance would go negative. Re-appending an existing
        (entry_type, reference_id) returns the stored entry unchanged."""
        ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]: ...
