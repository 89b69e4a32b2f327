"""Date and timestamp helpers"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 string (or pass through a datetime); None when unusable"""
    if isinstance(value, datetime):
        return ensure_aware(value)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    # fromisoformat on older interpreters does not accept the Z suffix
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_aware(datetime.fromisoformat(text))
    except ValueError:
        return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_aware(value).astimezone(timezone.utc).isoformat()


def start_of_day(day: date) -> datetime:
    """UTC midnight at the start of day"""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def exclusive_end_of_day(day: date) -> datetime:
    """UTC midnight of the following day; compare with < to include all of day"""
    return start_of_day(day + timedelta(days=1))
