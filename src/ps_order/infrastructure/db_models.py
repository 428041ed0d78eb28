# src/ps_order/infrastructure/db_models.py
"""SQLAlchemy ORM model for the orders table (DDL reference only — queries use raw SQL)."""
from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.ps_common.database import Base


class OrderORM(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    project_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    print_parameters: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="submitted")
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="on_hold")
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    paid_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    refund_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    refund_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(String(30), nullable=True)
    refund_bank_details: Mapped[str | None] = mapped_column(String(500), nullable=True)
    pending_update_id: Mapped[str | None] = mapped_column(String(26), nullable=True)
    pending_update: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    settled_refund_id: Mapped[str | None] = mapped_column(String(26), nullable=True)
    previous_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    shipping_method: Mapped[str] = mapped_column(String(20), nullable=False, default="pickup")
    shipping_address: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    tracking_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    review: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

