"""Tests for ps_common.id_generator and ps_common.datetime_utils."""

from datetime import datetime, timedelta, timezone

import pytest

from src.ps_common.datetime_utils import seconds_since, utc_now
from src.ps_common.id_generator import (
    SnowflakeIdGenerator,
    generate_id,
    issued_at,
    order_number,
)


class TestSnowflakeIdGenerator:
    def test_unique_and_increasing(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        ids = [int(gen.next_id()) for _ in range(1000)]
        assert len(set(ids)) == 1000
        assert ids == sorted(ids)

    def test_rejects_out_of_range_machine(self) -> None:
        with pytest.raises(ValueError):
            SnowflakeIdGenerator(machine_id=1024)

    def test_issued_at_is_now(self) -> None:
        assert abs((issued_at(generate_id()) - utc_now()).total_seconds()) < 5


class TestOrderNumber:
    def test_uses_created_at(self) -> None:
        created = datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert order_number("1234567890123", created) == "PS-260301-890123"

    def test_falls_back_to_id_timestamp(self) -> None:
        oid = generate_id()
        assert order_number(oid) == f"PS-{utc_now():%y%m%d}-{oid[-6:]}"


def test_seconds_since() -> None:
    now = utc_now()
    assert seconds_since(now - timedelta(seconds=2), now) == 2.0
