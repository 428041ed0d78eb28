"""006: create payment_confirmations table

Revision ID: 006
Revises: 005
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payment_confirmations (
            transaction_id  VARCHAR(100)    PRIMARY KEY,
            order_id        VARCHAR(26)     NOT NULL REFERENCES orders (id),
            amount          BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_payment_confirmations_order ON payment_confirmations (order_id);")
    op.execute("COMMENT ON TABLE payment_confirmations IS 'Gateway webhook receipts; retries hit the primary key';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payment_confirmations CASCADE;")
