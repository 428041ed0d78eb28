"""Async SQLAlchemy engine and session factory shared by every ps_* module.

Repositories never commit. Application services own the unit of work and call
``commit()`` / ``rollback()`` on the session they were handed; ledger writes and
order writes in one settlement are therefore separate, individually durable steps.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Base for the ORM classes in ``*/infrastructure/db_models.py`` (DDL reference only)."""


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_POOL_SIZE,
    pool_pre_ping=True,
)

# expire_on_commit=False: services keep reading domain objects after commit
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one AsyncSession per request."""
    async with async_session_factory() as session:
        yield session
