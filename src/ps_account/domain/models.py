"""Domain models for ps_account — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    user_id: str
    entry_type: str                  # LedgerEntryType value
    amount: int                      # minor units, positive=credit negative=debit
    balance_after: int               # minor units, running balance after this entry
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None


@dataclass
class CreditBalance:
    user_id: str
    balance: int                     # SUM(amount) over the user's ledger
    entry_count: int = 0
