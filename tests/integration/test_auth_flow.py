"""Integration tests for auth flow (requires running PG + Redis).

Run: pytest tests/integration/test_auth_flow.py -v
"""

import uuid

import pytest
from httpx import AsyncClient
from jose import jwt

pytestmark = [pytest.mark.integration, pytest.mark.asyncio(loop_scope="session")]


def unique_user() -> dict[str, str]:
    uid = uuid.uuid4().hex[:8]
    return {
        "username": f"testuser_{uid}",
        "email": f"test_{uid}@example.com",
        "password": "TestPass1",
    }


class TestRegister:
    async def test_register_creates_customer(self, client: AsyncClient) -> None:
        user = unique_user()
        resp = await client.post("/api/v1/auth/register", json=user)
        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["username"] == user["username"]
        assert body["data"]["role"] == "customer"

    async def test_register_duplicate_username(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/register", json={**user, "email": "other@example.com"}
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == 1001

    async def test_register_weak_password(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/auth/register", json={**unique_user(), "password": "weak"})
        assert resp.status_code == 422


class TestLogin:
    async def test_login_returns_role_bearing_token(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/login",
            json={"username": user["username"], "password": user["password"]},
        )
        assert resp.status_code == 200
        claims = jwt.get_unverified_claims(resp.json()["data"]["access_token"])
        assert claims["role"] == "customer"

    async def test_login_wrong_password(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/login",
            json={"username": user["username"], "password": "WrongPass1"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == 1003


class TestStaffGuard:
    async def test_customer_cannot_reach_admin_routes(self, client: AsyncClient, new_customer) -> None:
        headers = await new_customer()
        resp = await client.get("/api/v1/admin/orders", headers=headers)
        assert resp.status_code == 403
        assert resp.json()["code"] == 1006

    async def test_staff_can_list_all_orders(self, client: AsyncClient, staff_headers) -> None:
        resp = await client.get("/api/v1/admin/orders", headers=staff_headers)
        assert resp.status_code == 200
        assert "items" in resp.json()["data"]


class TestMe:
    async def test_profile_round_trip(self, client: AsyncClient) -> None:
        user = {**unique_user(), "full_name": "Ada Maker", "phone": "+48 600 100 200"}
        await client.post("/api/v1/auth/register", json=user)
        login = await client.post(
            "/api/v1/auth/login",
            json={"username": user["username"], "password": user["password"]},
        )
        token = login.json()["data"]["access_token"]

        resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert resp.json()["data"]["full_name"] == "Ada Maker"
        assert resp.json()["data"]["role"] == "customer"
