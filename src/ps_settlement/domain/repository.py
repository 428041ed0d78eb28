"""Payment confirmation persistence contract."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class PaymentConfirmationRepositoryProtocol(Protocol):
    async def record(
        self, transaction_id: str, order_id: str, amount: int, db: AsyncSession
    ) -> bool:
        """Store the confirmation; False if ``transaction_id`` was already seen."""
        ...
