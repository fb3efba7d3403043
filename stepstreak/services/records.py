"""
Record Store — persisted day records and the bonus ledger.

The streak engine only talks to a `RecordStore`; it never sees ORM objects.
Two implementations:

  SqlAlchemyRecordStore  — backed by the `day_records` / `bonus_ledger` tables
  InMemoryRecordStore    — dict keyed by date, for tests and scripts

Writes are staged until `commit()`; `rollback()` discards them. One
reconciliation = one unit of work.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stepstreak.core.config import settings
from stepstreak.models.bonus_ledger import BonusLedger, LEDGER_ID
from stepstreak.models.day_record import DayRecord as DayRecordRow


# ---------------------------------------------------------------------------
# Value types (plain dataclasses — no ORM, no Pydantic)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DayRecord:
    day: date
    goal: int
    actual: int
    bonus_used: bool = False
    bonus_earned: bool = False

    @property
    def credited(self) -> bool:
        """True when the day counts toward a streak (goal met or forgiven)."""
        return self.actual >= self.goal or self.bonus_used


@dataclass
class Ledger:
    balance: int
    max_balance: int
    earn_every_n: int
    watermark: Optional[date]

    @classmethod
    def default(cls, created_on: date) -> "Ledger":
        return cls(
            balance=0,
            max_balance=settings.BONUS_MAX_BALANCE,
            earn_every_n=settings.BONUS_EARN_EVERY_N,
            watermark=created_on,
        )

    def copy(self) -> "Ledger":
        return replace(self)

    def repaired(self, today: date) -> "Ledger":
        """Return a copy with out-of-range fields pulled back to valid values."""
        max_balance = self.max_balance
        if max_balance is None or max_balance < 0:
            max_balance = settings.BONUS_MAX_BALANCE
        balance = min(max(self.balance or 0, 0), max_balance)
        earn_every_n = self.earn_every_n if self.earn_every_n is not None else settings.BONUS_EARN_EVERY_N
        return Ledger(
            balance=balance,
            max_balance=max_balance,
            earn_every_n=earn_every_n,
            watermark=self.watermark or today,
        )


class RecordStoreError(Exception):
    """The backing storage failed to read or write."""


class RecordStore(Protocol):
    def get_record(self, day: date) -> Optional[DayRecord]: ...

    def put_record(self, record: DayRecord) -> None: ...

    def get_ledger(self) -> Optional[Ledger]: ...

    def put_ledger(self, ledger: Ledger) -> None: ...

    def records_between(self, start: date, end: date) -> list[DayRecord]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class InMemoryRecordStore:
    def __init__(
        self,
        records: Optional[list[DayRecord]] = None,
        ledger: Optional[Ledger] = None,
    ):
        self._records: dict[date, DayRecord] = {r.day: r for r in records or []}
        self._ledger = ledger.copy() if ledger else None
        self._staged_records: dict[date, DayRecord] = {}
        self._staged_ledger: Optional[Ledger] = None

    def get_record(self, day: date) -> Optional[DayRecord]:
        if day in self._staged_records:
            return self._staged_records[day]
        return self._records.get(day)

    def put_record(self, record: DayRecord) -> None:
        self._staged_records[record.day] = record

    def get_ledger(self) -> Optional[Ledger]:
        ledger = self._staged_ledger or self._ledger
        return ledger.copy() if ledger else None

    def put_ledger(self, ledger: Ledger) -> None:
        self._staged_ledger = ledger.copy()

    def records_between(self, start: date, end: date) -> list[DayRecord]:
        merged = {**self._records, **self._staged_records}
        return [merged[d] for d in sorted(merged) if start <= d <= end]

    def commit(self) -> None:
        self._records.update(self._staged_records)
        if self._staged_ledger is not None:
            self._ledger = self._staged_ledger
        self.rollback()

    def rollback(self) -> None:
        self._staged_records = {}
        self._staged_ledger = None


# ---------------------------------------------------------------------------
# SQLAlchemy store
# ---------------------------------------------------------------------------

def _row_to_record(row: DayRecordRow) -> DayRecord:
    return DayRecord(
        day=row.day,
        goal=row.goal,
        actual=row.actual,
        bonus_used=bool(row.bonus_used),
        bonus_earned=bool(row.bonus_earned),
    )


def _row_to_ledger(row: BonusLedger) -> Ledger:
    return Ledger(
        balance=row.balance,
        max_balance=row.max_balance,
        earn_every_n=row.earn_every_n,
        watermark=row.watermark,
    )


class SqlAlchemyRecordStore:
    """Record store over a caller-owned Session. Nothing is committed until `commit()`."""

    def __init__(self, db: Session):
        self.db = db

    def get_record(self, day: date) -> Optional[DayRecord]:
        try:
            row = self.db.query(DayRecordRow).filter(DayRecordRow.day == day).first()
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"failed to read day record {day}") from exc
        return _row_to_record(row) if row is not None else None

    def put_record(self, record: DayRecord) -> None:
        try:
            row = self.db.query(DayRecordRow).filter(DayRecordRow.day == record.day).first()
            if row is None:
                row = DayRecordRow(day=record.day, goal=record.goal)
                self.db.add(row)
            row.goal = record.goal
            row.actual = record.actual
            row.bonus_used = record.bonus_used
            row.bonus_earned = record.bonus_earned
            self.db.flush()
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"failed to write day record {record.day}") from exc

    def get_ledger(self) -> Optional[Ledger]:
        try:
            row = self.db.get(BonusLedger, LEDGER_ID)
        except SQLAlchemyError as exc:
            raise RecordStoreError("failed to read bonus ledger") from exc
        return _row_to_ledger(row) if row is not None else None

    def put_ledger(self, ledger: Ledger) -> None:
        try:
            row = self.db.get(BonusLedger, LEDGER_ID)
            if row is None:
                row = BonusLedger(id=LEDGER_ID, watermark=ledger.watermark)
                self.db.add(row)
            row.balance = ledger.balance
            row.max_balance = ledger.max_balance
            row.earn_every_n = ledger.earn_every_n
            row.watermark = ledger.watermark
            self.db.flush()
        except SQLAlchemyError as exc:
            raise RecordStoreError("failed to write bonus ledger") from exc

    def records_between(self, start: date, end: date) -> list[DayRecord]:
        try:
            rows = (
                self.db.query(DayRecordRow)
                .filter(DayRecordRow.day >= start, DayRecordRow.day <= end)
                .order_by(DayRecordRow.day)
                .all()
            )
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"failed to list day records {start}..{end}") from exc
        return [_row_to_record(r) for r in rows]

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            raise RecordStoreError("commit failed") from exc

    def rollback(self) -> None:
        self.db.rollback()
