"""003: create orders table

Revision ID: 003
Revises: 002
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(26)     PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL,
            project_id          VARCHAR(64),
            project_name        VARCHAR(200),
            file_name           VARCHAR(255)    NOT NULL,
            print_parameters    JSONB           NOT NULL DEFAULT '{}'::jsonb,
            status              VARCHAR(20)     NOT NULL DEFAULT 'submitted',
            payment_status      VARCHAR(20)     NOT NULL DEFAULT 'on_hold',
            price               BIGINT          NOT NULL,
            paid_amount         BIGINT          NOT NULL DEFAULT 0,
            refund_method       VARCHAR(20),
            refund_amount       BIGINT,
            refund_reason       VARCHAR(30),
            refund_bank_details VARCHAR(500),
            pending_update_id   VARCHAR(26),
            pending_update      JSONB,
            settled_refund_id   VARCHAR(26),
            previous_status     VARCHAR(20),
            shipping_method     VARCHAR(20)     NOT NULL DEFAULT 'pickup',
            shipping_address    JSONB,
            tracking_code       VARCHAR(100),
            review              TEXT,
            version             INTEGER         NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_status CHECK (status IN (
                'submitted', 'in_queue', 'printing', 'finished', 'delivered',
                'on_hold', 'suspended', 'refund_requested'
            )),
            CONSTRAINT ck_orders_payment_status CHECK (payment_status IN (
                'on_hold', 'paid', 'refunding', 'refunded'
            )),
            CONSTRAINT ck_orders_refund_method CHECK (
                refund_method IS NULL OR refund_method IN ('credit', 'bank', 'original')
            ),
            CONSTRAINT ck_orders_amounts CHECK (
                price >= 0 AND paid_amount >= 0 AND COALESCE(refund_amount, 0) >= 0
            ),
            CONSTRAINT ck_orders_suspended_not_paid CHECK (
                NOT (status = 'suspended' AND payment_status = 'paid')
            ),
            CONSTRAINT ck_orders_pending_pair CHECK (
                (pending_update_id IS NULL) = (pending_update IS NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_user ON orders (user_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_project ON orders (project_id) WHERE project_id IS NOT NULL;")
    op.execute("CREATE INDEX idx_orders_status ON orders (status, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE orders IS 'Print jobs; never deleted. Amounts in minor units (grosze)';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
