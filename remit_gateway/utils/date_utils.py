"""Date manipulation utilities"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_minutes(from_time: datetime, minutes: int) -> datetime:
    return from_time + timedelta(minutes=minutes)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)


def within_window(value: datetime, start: datetime, end: datetime) -> bool:
    """Inclusive on both ends"""
    return start <= value <= end
