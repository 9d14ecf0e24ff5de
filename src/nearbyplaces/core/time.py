"""
Timestamp helpers.

All timestamps are timezone-aware UTC datetimes so freshness checks never mix
naive and aware values.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso8601(dt: datetime) -> str:
    """Format as ISO-8601 with millisecond precision and a trailing `Z`."""
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def age_seconds(dt: datetime, *, now: datetime | None = None) -> float:
    """Seconds elapsed since `dt` (negative if `dt` is in the future)."""
    reference = now if now is not None else utc_now()
    return (ensure_utc(reference) - ensure_utc(dt)).total_seconds()
