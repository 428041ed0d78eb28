"""Snowflake-style string IDs for orders, messages and staged commands.

IDs sort by issue time, which the cursor pagination on orders relies on.
Each API replica must run with its own ``ID_MACHINE_ID``.
"""

import threading
import time
from datetime import datetime, timezone

from config.settings import settings

_EPOCH_MS = 1_735_689_600_000  # 2025-01-01T00:00:00Z
_MACHINE_BITS = 10
_SEQUENCE_BITS = 12
_SEQUENCE_MASK = (1 << _SEQUENCE_BITS) - 1


class SnowflakeIdGenerator:
    """41 bits of milliseconds since the shop epoch, 10 bits machine, 12 bits sequence."""

    def __init__(self, machine_id: int = 0) -> None:
        if not 0 <= machine_id < (1 << _MACHINE_BITS):
            raise ValueError(f"machine_id must be 0-{(1 << _MACHINE_BITS) - 1}, got {machine_id}")
        self._machine_id = machine_id
        self._last_ms = -1
        self._sequence = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = time.time_ns() // 1_000_000
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    # 4096 ids in one millisecond: spin into the next one
                    while now_ms <= self._last_ms:
                        now_ms = time.time_ns() // 1_000_000
            else:
                self._sequence = 0
            self._last_ms = now_ms
            value = (
                (now_ms - _EPOCH_MS) << (_MACHINE_BITS + _SEQUENCE_BITS)
                | self._machine_id << _SEQUENCE_BITS
                | self._sequence
            )
            return str(value)


_default_generator = SnowflakeIdGenerator(settings.ID_MACHINE_ID)


def generate_id() -> str:
    return _default_generator.next_id()


def issued_at(snowflake_id: str) -> datetime:
    """Timestamp embedded in an ID from ``generate_id``."""
    ms = (int(snowflake_id) >> (_MACHINE_BITS + _SEQUENCE_BITS)) + _EPOCH_MS
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def order_number(order_id: str, created_at: datetime | None = None) -> str:
    """Human-facing order number for emails and the support inbox: PS-YYMMDD-<last 6 of id>."""
    day = created_at or issued_at(order_id)
    return f"PS-{day:%y%m%d}-{order_id[-6:]}"
