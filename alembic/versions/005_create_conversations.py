"""005: create conversations and conversation_messages tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE conversations (
            id                      VARCHAR(26)     PRIMARY KEY,
            order_id                VARCHAR(26)     NOT NULL REFERENCES orders (id),
            user_id                 VARCHAR(64)     NOT NULL,
            subject                 VARCHAR(200)    NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'open',
            customer_last_read_at   TIMESTAMPTZ,
            staff_last_read_at      TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            -- updated_at is written by the application: last message time or status change
            CONSTRAINT uq_conversations_order UNIQUE (order_id),
            CONSTRAINT ck_conversations_status CHECK (
                status IN ('open', 'in_progress', 'resolved', 'closed')
            )
        );
    """)
    op.execute("CREATE INDEX idx_conversations_user ON conversations (user_id, updated_at DESC);")
    op.execute("CREATE INDEX idx_conversations_status ON conversations (status, updated_at DESC);")

    op.execute("""
        CREATE TABLE conversation_messages (
            id              VARCHAR(26)     PRIMARY KEY,
            conversation_id VARCHAR(26)     NOT NULL REFERENCES conversations (id),
            sender_role     VARCHAR(10)     NOT NULL,
            sender_id       VARCHAR(64),
            body            TEXT            NOT NULL,
            attachments     JSONB           NOT NULL DEFAULT '[]'::jsonb,
            created_at      TIMESTAMPTZ     NOT NULL,
            CONSTRAINT ck_messages_sender_role CHECK (
                sender_role IN ('customer', 'staff', 'system')
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_messages_conversation_time
        ON conversation_messages (conversation_id, created_at DESC);
    """)
    op.execute("COMMENT ON TABLE conversation_messages IS 'Support messages — append-only';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS conversation_messages CASCADE;")
    op.execute("DROP TABLE IF EXISTS conversations CASCADE;")
