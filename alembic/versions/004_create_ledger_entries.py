"""004: create ledger_entries table

Revision ID: 004
Revises: 003
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            entry_type      VARCHAR(30)     NOT NULL,
            amount          BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            reference_type  VARCHAR(30),
            reference_id    VARCHAR(64),
            description     VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_entry_type CHECK (
                entry_type IN ('PURCHASE', 'REFUND_CREDIT', 'ORDER_PAYMENT', 'ADMIN_ADJUSTMENT')
            ),
            CONSTRAINT ck_ledger_balance_gte_0 CHECK (balance_after >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_ledger_user_id ON ledger_entries (user_id, id DESC);")
    # One REFUND_CREDIT per refund id, one ORDER_PAYMENT per order
    op.execute("""
        CREATE UNIQUE INDEX uq_ledger_reference
        ON ledger_entries (entry_type, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("COMMENT ON TABLE ledger_entries IS 'Store credit ledger — append-only, amounts in grosze';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
