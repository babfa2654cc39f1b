from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from gatepass.core.config import settings

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalize aware ones"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_zone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def local_day_bounds(day: date) -> Tuple[datetime, datetime]:
    """UTC [start, end) of a calendar day in the configured timezone"""
    start = datetime.combine(day, time.min, tzinfo=local_zone())
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_today(now: Optional[datetime] = None) -> date:
    return (ensure_utc(now) or utcnow()).astimezone(local_zone()).date()
