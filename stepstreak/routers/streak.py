"""
Streak router.

POST /streak/reconcile  — run the reconciliation engine through today
GET  /streak/ledger     — current bonus ledger
GET  /streak/records    — stored day records in a date range
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stepstreak.core.dates import local_today
from stepstreak.core.errors import FutureDateError, InvalidDateRangeError
from stepstreak.db.base import get_db
from stepstreak.schemas.common import ErrorResponse
from stepstreak.schemas.streak import (
    DayRecordListResponse,
    DayRecordOut,
    LedgerOut,
    ReconcileRequest,
    ReconcileResponse,
)
from stepstreak.services.activity import DatabaseActivitySource
from stepstreak.services.goal_settings import get_daily_goal
from stepstreak.services.records import DayRecord, Ledger, SqlAlchemyRecordStore
from stepstreak.services.streak_engine import refresh_streak

router = APIRouter(prefix="/streak", tags=["streak"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _ledger_out(ledger: Ledger) -> LedgerOut:
    return LedgerOut(
        balance=ledger.balance,
        max_balance=ledger.max_balance,
        earn_every_n=ledger.earn_every_n,
        watermark=str(ledger.watermark) if ledger.watermark else None,
    )


def _record_out(record: DayRecord) -> DayRecordOut:
    return DayRecordOut(
        day=str(record.day),
        goal=record.goal,
        actual=record.actual,
        bonus_used=record.bonus_used,
        achieved=record.actual >= record.goal,
    )


# ---------------------------------------------------------------------------
# POST /streak/reconcile
# ---------------------------------------------------------------------------

@router.post(
    "/reconcile",
    response_model=ReconcileResponse,
    summary="Recompute the streak and bonus balance through today",
    responses={
        409: {"model": ErrorResponse, "description": "Clock moved backward past the watermark."},
        422: {"model": ErrorResponse, "description": "Invalid goal target, request body, or a future `today`."},
        503: {"model": ErrorResponse, "description": "Storage failed; nothing was saved."},
    },
)
def reconcile_streak(
    payload: Optional[ReconcileRequest] = None,
    db: Session = Depends(get_db),
):
    """
    Walk every day from the ledger watermark through `today`:

    - a day that meets its goal extends the streak;
    - a missed past day spends one bonus day if available;
    - any other miss resets the streak. Today is never bonus-covered.

    Every `earn_every_n` consecutive credited days earn one bonus day, up to
    `max_balance`. Safe to call repeatedly: today is simply re-evaluated.
    A `today` after the server's local day is rejected.
    """
    now = local_today()
    today = (payload.today if payload else None) or now
    if today > now:
        raise FutureDateError(day=today, today=now)
    result = refresh_streak(
        store=SqlAlchemyRecordStore(db),
        source=DatabaseActivitySource(db),
        today=today,
        goal_target=get_daily_goal(db),
    )
    return ReconcileResponse(
        streak=result.streak,
        carried_streak=result.carried_streak,
        ledger=_ledger_out(result.ledger),
        days=[_record_out(r) for r in result.processed],
    )


# ---------------------------------------------------------------------------
# GET /streak/ledger
# ---------------------------------------------------------------------------

@router.get(
    "/ledger",
    response_model=LedgerOut,
    summary="Current bonus ledger",
)
def read_ledger(db: Session = Depends(get_db)):
    """Return the stored ledger, or the defaults a first reconciliation would start from."""
    today = local_today()
    ledger = SqlAlchemyRecordStore(db).get_ledger()
    return _ledger_out(ledger.repaired(today) if ledger else Ledger.default(today))


# ---------------------------------------------------------------------------
# GET /streak/records
# ---------------------------------------------------------------------------

@router.get(
    "/records",
    response_model=DayRecordListResponse,
    summary="Stored day records (oldest first)",
    responses={422: {"model": ErrorResponse, "description": "start_date after end_date."}},
)
def list_day_records(
    start_date: Optional[date] = Query(
        default=None,
        description="First day (inclusive). Defaults to 6 days before end_date.",
        examples=["2026-02-14"],
    ),
    end_date: Optional[date] = Query(
        default=None,
        description="Last day (inclusive). Defaults to today.",
        examples=["2026-02-20"],
    ),
    db: Session = Depends(get_db),
):
    end = end_date or local_today()
    start = start_date or end - timedelta(days=6)
    if start > end:
        raise InvalidDateRangeError(start=start, end=end)
    records = SqlAlchemyRecordStore(db).records_between(start, end)
    return DayRecordListResponse(
        total=len(records),
        items=[_record_out(r) for r in records],
    )
