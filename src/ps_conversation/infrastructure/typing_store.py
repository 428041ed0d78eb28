"""Redis-backed typing flag.

One key per conversation holding ``{"role", "heartbeat_at"}``. The key TTL is
the staleness window, and readers re-check the heartbeat age anyway, so a
missed ``false`` never leaves a stuck indicator.
"""
import json
import math
from datetime import datetime

import redis.asyncio as aioredis

from config.settings import settings
from src.ps_common.enums import SenderRole
from src.ps_common.redis_client import get_redis
from src.ps_conversation.domain.models import TypingState

_KEY_PREFIX = "conversation:typing:"

# Atomic compare-and-delete: only the owner's flag is removed
_CLEAR_OWN_FLAG = """
local raw = redis.call("GET", KEYS[1])
if raw and cjson.decode(raw)["role"] == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


def _key(conversation_id: str) -> str:
    return f"{_KEY_PREFIX}{conversation_id}"


class RedisTypingStore:
    def __init__(
        self, client: aioredis.Redis | None = None, ttl_seconds: float | None = None
    ) -> None:
        self._client = client
        window = ttl_seconds if ttl_seconds is not None else settings.TYPING_STALENESS_SECONDS
        self._ttl = max(1, math.ceil(window))

    async def _redis(self) -> aioredis.Redis:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def get(self, conversation_id: str) -> TypingState | None:
        client = await self._redis()
        raw = await client.get(_key(conversation_id))
        if raw is None:
            return None
        payload = json.loads(raw)
        return TypingState(
            role=SenderRole(payload["role"]),
            heartbeat_at=datetime.fromisoformat(payload["heartbeat_at"]),
        )

    async def set(self, conversation_id: str, state: TypingState) -> None:
        client = await self._redis()
        payload = json.dumps(
            {"role": state.role.value, "heartbeat_at": state.heartbeat_at.isoformat()}
        )
        await client.set(_key(conversation_id), payload, ex=self._ttl)

    async def clear(self, conversation_id: str, role: SenderRole) -> None:
        client = await self._redis()
        await client.eval(_CLEAR_OWN_FLAG, 1, _key(conversation_id), role.value)
