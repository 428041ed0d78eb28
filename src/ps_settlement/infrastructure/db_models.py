"""SQLAlchemy ORM model for payment confirmations (DDL reference only)."""
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.ps_common.database import Base


class PaymentConfirmationORM(Base):
    __tablename__ = "payment_confirmations"

    transaction_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    order_id: Mapped[str] = mapped_column(String(26), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    # NOTE: append-only, one row per gateway transaction
