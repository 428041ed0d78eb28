"""Shop accounts: register, login, refresh, profile.

Transactions are managed by the caller (router layer) via `async with db.begin()`.
Self-registration always creates a customer; staff accounts are promoted in
the database by an operator.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.enums import UserRole
from src.ps_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    UsernameExistsError,
)
from src.ps_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.ps_gateway.auth.password import hash_password, verify_password
from src.ps_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)


class UserService:
    async def _find(self, db: AsyncSession, *criteria) -> UserModel | None:
        result = await db.execute(select(UserModel).where(*criteria))
        return result.scalar_one_or_none()

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        db: AsyncSession,
        full_name: str | None = None,
        phone: str | None = None,
    ) -> UserModel:
        if await self._find(db, UserModel.username == username) is not None:
            raise UsernameExistsError()
        if await self._find(db, func.lower(UserModel.email) == email.lower()) is not None:
            raise EmailExistsError()

        user = UserModel(
            username=username,
            email=email.lower(),
            password_hash=hash_password(password),
            full_name=full_name,
            phone=phone,
            role=UserRole.CUSTOMER.value,
            is_active=True,
        )
        db.add(user)
        await db.flush()  # id and created_at come from server defaults
        await db.refresh(user)
        logger.info("Customer account %s registered", user.username)
        return user

    async def login(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> tuple[UserModel, str, str]:
        """Return (user, access_token, refresh_token).

        Unknown user and wrong password raise the same InvalidCredentialsError.
        """
        user = await self._find(db, UserModel.username == username)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        if not user.is_active:
            raise AccountDisabledError()
        return (
            user,
            create_access_token(str(user.id), user.role),
            create_refresh_token(str(user.id)),
        )

    async def refresh(self, refresh_token: str, db: AsyncSession) -> str:
        """New access token carrying the role as it is now, not as it was at login."""
        payload = decode_token(refresh_token, expected_type="refresh")
        user = await self._find(db, UserModel.id == str(payload["sub"]))
        if user is None:
            raise InvalidRefreshTokenError()
        if not user.is_active:
            raise AccountDisabledError()
        return create_access_token(str(user.id), user.role)
