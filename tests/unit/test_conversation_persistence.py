"""ConversationRepository SQL shape checks (no database)."""

from unittest.mock import AsyncMock

import pytest

from src.ps_common.enums import SenderRole
from src.ps_conversation.infrastructure.persistence import ConversationRepository
from fakes import T0


@pytest.mark.parametrize(
    ("role", "column"),
    [(SenderRole.STAFF, "staff_last_read_at"), (SenderRole.CUSTOMER, "customer_last_read_at")],
)
async def test_read_marker_never_moves_backwards(role: SenderRole, column: str) -> None:
    db = AsyncMock()

    await ConversationRepository().set_read_marker("c-1", role, T0, db)

    stmt, params = db.execute.await_args.args
    sql = " ".join(str(stmt).split())
    assert f"SET {column} = GREATEST(COALESCE({column}, :at), :at)" in sql
    assert params == {"id": "c-1", "at": T0}
