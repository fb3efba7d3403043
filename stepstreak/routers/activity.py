"""
Activity router.

POST /activity  — store daily totals reported by the device
GET  /activity  — daily totals for an inclusive date range
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from stepstreak.core.dates import days_between, local_today
from stepstreak.core.errors import (
    DateRangeTooLargeError,
    InvalidDateRangeError,
    StorageUnavailableError,
)
from stepstreak.db.base import get_db
from stepstreak.schemas.activity import (
    ACTIVITY_MAX_ITEMS,
    ActivityBatchRequest,
    ActivityBatchResponse,
    ActivityOut,
    ActivityRangeResponse,
)
from stepstreak.schemas.common import ErrorResponse
from stepstreak.services.activity import (
    ActivityItem,
    ActivitySourceError,
    DatabaseActivitySource,
    record_daily_amounts,
)

router = APIRouter(prefix="/activity", tags=["activity"])


@router.post(
    "",
    response_model=ActivityBatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Store daily activity totals",
    responses={422: {"model": ErrorResponse, "description": "Negative amount, empty or oversized batch."}},
)
def post_activity(payload: ActivityBatchRequest, db: Session = Depends(get_db)):
    """
    Upsert one total per day. Reporting a day again replaces its total,
    which is how today's count grows during the day.

    Storing activity does not touch the streak; call `POST /streak/reconcile`.
    """
    rows = record_daily_amounts(
        db,
        [ActivityItem(day=i.day, amount=i.amount, source=payload.source) for i in payload.items],
    )
    return ActivityBatchResponse(
        stored=len(rows),
        items=[ActivityOut(day=str(r.day), amount=r.amount) for r in rows],
    )


@router.get(
    "",
    response_model=ActivityRangeResponse,
    summary="Daily totals for a date range",
    responses={
        422: {"model": ErrorResponse, "description": "start_date after end_date, or range over 366 days."},
        503: {"model": ErrorResponse, "description": "Storage unavailable."},
    },
)
def get_activity(
    start_date: Optional[date] = Query(
        default=None,
        description="First day (inclusive). Defaults to 6 days before end_date.",
    ),
    end_date: Optional[date] = Query(
        default=None,
        description="Last day (inclusive). Defaults to today.",
    ),
    db: Session = Depends(get_db),
):
    end = end_date or local_today()
    start = start_date or end - timedelta(days=6)
    if start > end:
        raise InvalidDateRangeError(start=start, end=end)
    if (end - start).days + 1 > ACTIVITY_MAX_ITEMS:
        raise DateRangeTooLargeError(start=start, end=end, max_days=ACTIVITY_MAX_ITEMS)

    try:
        amounts = DatabaseActivitySource(db).fetch_daily_amounts(start, end)
    except ActivitySourceError as exc:
        raise StorageUnavailableError(reason=str(exc)) from exc
    items = [ActivityOut(day=str(d), amount=amounts.get(d, 0)) for d in days_between(start, end)]
    return ActivityRangeResponse(
        start_date=str(start),
        end_date=str(end),
        total=sum(i.amount for i in items),
        items=items,
    )
