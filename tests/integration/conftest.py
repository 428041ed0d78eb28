"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Pre-condition: make up && make migrate
"""

import uuid
from collections.abc import Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.main import app
from src.ps_common.database import async_session_factory

Headers = dict[str, str]


def unique_user(prefix: str = "cust") -> dict[str, str]:
    uid = uuid.uuid4().hex[:8]
    return {
        "username": f"{prefix}_{uid}",
        "email": f"{prefix}_{uid}@example.com",
        "password": "TestPass1",
    }


async def _login(client: AsyncClient, user: dict[str, str]) -> Headers:
    resp = await client.post(
        "/api/v1/auth/login",
        json={"username": user["username"], "password": user["password"]},
    )
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def new_customer(client: AsyncClient) -> Callable[[], Awaitable[Headers]]:
    """Factory: register a fresh customer and return its auth headers."""

    async def make() -> Headers:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        return await _login(client, user)

    return make


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def staff_headers(client: AsyncClient) -> Headers:
    """A staff account; registration only creates customers, so promote in SQL."""
    user = unique_user("staff")
    await client.post("/api/v1/auth/register", json=user)
    async with async_session_factory() as session:
        await session.execute(
            text("UPDATE users SET role = 'staff' WHERE username = :username"),
            {"username": user["username"]},
        )
        await session.commit()
    return await _login(client, user)
