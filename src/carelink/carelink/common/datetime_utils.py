from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from ..core.exceptions import ValidationError


def utcnow() -> datetime:
    """Current UTC time (timezone-aware).

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(value: Union[str, datetime, None], field_name: str) -> datetime:
    """Parse an ISO 8601 timestamp ('Z' suffix accepted) into an aware UTC datetime."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    raw = (value or "").strip() if isinstance(value, str) else ""
    if not raw:
        raise ValidationError(f"Invalid {field_name} date/time")
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError:
        raise ValidationError(f"Invalid {field_name} date/time")


def parse_optional_datetime(value: Optional[str], field_name: str) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_iso_datetime(value, field_name)


def start_of_week_utc(value: datetime) -> datetime:
    """Monday 00:00:00 UTC of the ISO week containing `value`."""
    d = ensure_utc(value)
    day_start = datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    return day_start - timedelta(days=day_start.weekday())


def end_of_week_utc(week_start: datetime) -> datetime:
    """Sunday 23:59:59.999 UTC for a week starting at `week_start`."""
    return ensure_utc(week_start) + timedelta(days=7) - timedelta(milliseconds=1)


def day_bounds_utc(value: datetime) -> tuple[datetime, datetime]:
    d = ensure_utc(value)
    start = datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1) - timedelta(milliseconds=1)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, rounded, never negative."""
    return max(0, round_half_up((end - start).total_seconds() / 60))


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def to_iso_date(value: Union[date, datetime, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return ensure_utc(value).strftime("%Y-%m-%d")
    return value.strftime("%Y-%m-%d")
