"""Unit tests for user service (mocked DB)."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from jose import jwt

from src.ps_common.errors import (
    AccountDisabledError,
    InvalidCredentialsError,
    UsernameExistsError,
)
from src.ps_gateway.auth.password import hash_password
from src.ps_gateway.user.db_models import UserModel
from src.ps_gateway.user.service import UserService


def _make_user(is_active: bool = True, role: str = "customer") -> UserModel:
    user = UserModel()
    user.id = uuid.uuid4()
    user.username = "alice"
    user.email = "alice@example.com"
    user.password_hash = hash_password("Pass1word")
    user.role = role
    user.is_active = is_active
    return user


def _db_returning(user: UserModel | None) -> AsyncMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    db = AsyncMock()
    db.execute = AsyncMock(return_value=result)
    return db


async def test_duplicate_username_raises_error() -> None:
    with pytest.raises(UsernameExistsError):
        await UserService().register("alice", "new@example.com", "Pass1word", _db_returning(_make_user()))


async def test_register_creates_customer() -> None:
    db = _db_returning(None)
    db.add = MagicMock()

    user = await UserService().register("bob", "bob@example.com", "Pass1word", db)

    assert user.role == "customer"
    db.add.assert_called_once_with(user)


async def test_login_token_carries_staff_role() -> None:
    user = _make_user(role="staff")
    _, access, _ = await UserService().login("alice", "Pass1word", _db_returning(user))
    assert jwt.get_unverified_claims(access)["role"] == "staff"


async def test_wrong_password_raises_credentials_error() -> None:
    with pytest.raises(InvalidCredentialsError):
        await UserService().login("alice", "Wrong1pass", _db_returning(_make_user()))


async def test_disabled_account_raises_error() -> None:
    with pytest.raises(AccountDisabledError):
        await UserService().login("alice", "Pass1word", _db_returning(_make_user(is_active=False)))


async def test_register_lowercases_email_and_keeps_profile() -> None:
    db = _db_returning(None)
    db.add = MagicMock()

    user = await UserService().register(
        "carol", "Carol@Example.com", "Pass1word", db, full_name="Carol K", phone="+48 600 100 200"
    )

    assert user.email == "carol@example.com"
    assert user.full_name == "Carol K"
    assert user.phone == "+48 600 100 200"
    assert user.is_staff is False
