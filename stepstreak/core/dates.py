"""
Calendar-day helpers.

Every day the streak engine touches is a plain `datetime.date` in the
configured local calendar. Timestamps coming from outside are reduced to
their local day with `to_local_day`; nothing downstream ever stores a time.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from stepstreak.core.config import settings

ONE_DAY = timedelta(days=1)


def _tz(tz_name: Optional[str]):
    name = tz_name or settings.TIMEZONE
    if not name or name == "local":
        return None
    return ZoneInfo(name)


def to_local_day(value: date | datetime, tz_name: Optional[str] = None) -> date:
    """Normalize a date or datetime to its calendar day in the local calendar.

    Naive datetimes are taken to already be local wall-clock time.
    Aware datetimes are converted to the configured zone first.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            tz = _tz(tz_name)
            value = value.astimezone(tz) if tz is not None else value.astimezone()
        return value.date()
    return value


def local_today(tz_name: Optional[str] = None) -> date:
    tz = _tz(tz_name)
    if tz is None:
        return datetime.now().date()
    return datetime.now(tz=timezone.utc).astimezone(tz).date()


def next_day(day: date) -> date:
    return day + ONE_DAY


def previous_day(day: date) -> date:
    return day - ONE_DAY


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day from start to end inclusive, oldest first. Empty if start > end."""
    current = start
    while current <= end:
        yield current
        current += ONE_DAY


def days_between(start: date, end: date) -> list[date]:
    return list(iter_days(start, end))
