"""
Timestamp helpers.

Wire timestamps are ISO-8601 UTC with millisecond precision and a trailing
'Z' (the shape JavaScript's Date.toISOString() produces).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> datetime:
    """Return `dt` as an aware UTC datetime; None means now. Naive values are taken as UTC."""
    if dt is None:
        return utcnow()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    dt = ensure_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: object) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Raises ValueError for anything that is not a parseable string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("timestamp must be a non-empty string")
    s = value.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    try:
        return ensure_utc(dt)
    except OverflowError:
        # Offset pushes the instant outside datetime's year range.
        raise ValueError(f"timestamp out of range: {value!r}") from None
