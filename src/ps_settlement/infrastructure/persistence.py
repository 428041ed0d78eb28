"""PaymentConfirmationRepository — one row per gateway transaction."""
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

_INSERT_CONFIRMATION_SQL = text("""
    INSERT INTO payment_confirmations (transaction_id, order_id, amount)
    VALUES (:transaction_id, :order_id, :amount)
    ON CONFLICT (transaction_id) DO NOTHING
    RETURNING transaction_id
""")


class PaymentConfirmationRepository:
    async def record(
        self, transaction_id: str, order_id: str, amount: int, db: AsyncSession
    ) -> bool:
        result = await db.execute(
            _INSERT_CONFIRMATION_SQL,
            {"transaction_id": transaction_id, "order_id": order_id, "amount": amount},
        )
        return result.fetchone() is not None
