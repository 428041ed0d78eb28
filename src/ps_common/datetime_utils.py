"""UTC datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def seconds_since(moment: datetime, now: datetime) -> float:
    """Elapsed seconds from ``moment`` to ``now`` (negative if moment is in the future)."""
    return (now - moment).total_seconds()


def isoformat_or_none(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None
