"""Academy-local calendar helpers. Timestamps are stored in UTC."""
from datetime import date, datetime, time, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from academy.core.config import ACADEMY_TIMEZONE


@lru_cache(maxsize=1)
def academy_tz() -> ZoneInfo:
    return ZoneInfo(ACADEMY_TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_local() -> datetime:
    return datetime.now(academy_tz())


def today_local() -> date:
    """Today's date at the academy, not on the server"""
    return now_local().date()


def to_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        # SQLite hands back naive values; they were written as UTC
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(academy_tz())


def local_datetime(day: date, at: time) -> datetime:
    """Combine a session date and wall-clock time in the academy timezone"""
    return datetime.combine(day, at, tzinfo=academy_tz())
