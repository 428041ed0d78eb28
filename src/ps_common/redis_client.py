"""Shared Redis connection for ephemeral conversation state.

Only typing heartbeats live here, each under a TTL; losing Redis loses at most
a few seconds of "is typing" indicators. Orders, messages and the credit
ledger always go through PostgreSQL.
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    global _redis  # noqa: PLW0603
    if _redis is None:
        _redis = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.EXTERNAL_TIMEOUT_SECONDS,
        )
    return _redis


async def ping_redis() -> None:
    """Fail fast at startup if Redis is unreachable."""
    await (await get_redis()).ping()


async def close_redis() -> None:
    global _redis  # noqa: PLW0603
    if _redis is not None:
        await _redis.aclose()
        _redis = None
