from __future__ import annotations
from datetime import date, datetime, time
from typing import Optional
from dateutil.tz import tzutc

from ..errors import ValidationError


def utcnow() -> datetime:
    """Naive UTC now; the store keeps naive UTC timestamps."""
    return datetime.now(tzutc()).replace(tzinfo=None)


def parse_iso8601(s: str | None, field: str = "datetime") -> Optional[datetime]:
    """Parse an ISO datetime string into a naive UTC datetime.

    Accepts inputs like '2025-10-22T12:00:00Z' or '2025-10-22T12:00:00+09:00'.
    Naive inputs are assumed to already be UTC.
    """
    if s is None or s == "":
        return None
    if not isinstance(s, str):
        raise ValidationError(f"{field} must be an ISO-8601 string")
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"{field} is not a valid ISO-8601 datetime") from exc
    if dt.tzinfo is not None:
        dt = dt.astimezone(tzutc()).replace(tzinfo=None)
    return dt


def parse_clock(s: str | None, field: str = "time") -> Optional[time]:
    """Parse 'HH:MM' or 'HH:MM:SS' into a time of day."""
    if s is None or s == "":
        return None
    if not isinstance(s, str):
        raise ValidationError(f"{field} must be a 'HH:MM' string")
    try:
        return time.fromisoformat(s)
    except ValueError as exc:
        raise ValidationError(f"{field} is not a valid time of day") from exc


def to_iso(value: datetime | date | time | None) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        # stored as UTC naive
        if value.tzinfo is None:
            value = value.replace(tzinfo=tzutc())
        return value.astimezone(tzutc()).isoformat().replace("+00:00", "Z")
    return value.isoformat()
