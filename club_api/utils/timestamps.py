"""
ISO-8601 helpers.

Timestamps are written the way browsers write `Date.toISOString()`:
UTC, millisecond precision, `Z` suffix (2025-01-31T09:30:00.000Z).
"""
from datetime import datetime, timezone
from typing import Optional


def to_iso(dt: datetime) -> str:
    """Format an aware or naive (assumed UTC) datetime as ISO-8601 UTC with milliseconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp. Naive values are taken as UTC.
    Returns None when the value is empty or not a timestamp.
    """
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
