"""
Activity Source — daily activity totals keyed by local calendar day.

The engine only needs `fetch_daily_amounts(start, end)`; days without data
are simply absent from the returned dict and count as zero.

Device data arrives through `record_daily_amounts`, which upserts one row
per day. A day's total is overwritten on every report because the device
keeps counting while the day is in progress.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Mapping, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stepstreak.core.dates import to_local_day
from stepstreak.models.daily_activity import DailyActivity

logger = logging.getLogger(__name__)


class ActivitySourceError(Exception):
    """The activity backend could not be read."""


class ActivitySource(Protocol):
    def fetch_daily_amounts(self, start: date, end: date) -> dict[date, int]: ...


class MappingActivitySource:
    """Activity source over an in-memory mapping. Keys may be dates or datetimes."""

    def __init__(self, amounts: Mapping[date | datetime, int]):
        self._amounts: dict[date, int] = {}
        for key, value in amounts.items():
            day = to_local_day(key)
            self._amounts[day] = self._amounts.get(day, 0) + int(value)

    def fetch_daily_amounts(self, start: date, end: date) -> dict[date, int]:
        return {d: v for d, v in self._amounts.items() if start <= d <= end}


class DatabaseActivitySource:
    """Activity source over the `daily_activity` table."""

    def __init__(self, db: Session):
        self.db = db

    def fetch_daily_amounts(self, start: date, end: date) -> dict[date, int]:
        try:
            rows = (
                self.db.query(DailyActivity.day, DailyActivity.amount)
                .filter(DailyActivity.day >= start, DailyActivity.day <= end)
                .all()
            )
        except SQLAlchemyError as exc:
            raise ActivitySourceError(f"failed to read activity {start}..{end}") from exc
        return {row.day: row.amount for row in rows}


# ---------------------------------------------------------------------------
# Ingest
# ---------------------------------------------------------------------------

@dataclass
class ActivityItem:
    day: date
    amount: int
    source: Optional[str] = None


def record_daily_amounts(db: Session, items: list[ActivityItem]) -> list[DailyActivity]:
    """Upsert one daily_activity row per item. Later items for the same day win."""
    latest: dict[date, ActivityItem] = {}
    for item in items:
        latest[to_local_day(item.day)] = item

    rows: list[DailyActivity] = []
    for day in sorted(latest):
        item = latest[day]
        row = db.query(DailyActivity).filter(DailyActivity.day == day).first()
        if row is None:
            row = DailyActivity(day=day)
            db.add(row)
        row.amount = item.amount
        row.source = item.source
        rows.append(row)

    db.commit()
    for row in rows:
        db.refresh(row)
    logger.info("Recorded activity for %d day(s)", len(rows))
    return rows
