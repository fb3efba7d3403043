"""
Streak Reconciliation Engine.

Given today's date, the current goal target and the activity amounts for the
days since the last reconciliation, recompute the streak and the bonus-day
balance, and persist one DayRecord per processed day.

Walk
----
  seed    = min(watermark + 1, today)      today can always be reprocessed
  carried = credited days ending at seed - 1, read from stored records
  for each day seed..today:
      met goal                          -> streak + 1
      missed, not today, balance > 0    -> spend 1 bonus, streak + 1
      otherwise                         -> streak = 0
      streak hits a multiple of N       -> earn 1 bonus (capped)

The current day is never bonus-covered: it is still in progress.

Idempotency
-----------
Once the watermark equals today, every call reprocesses only today and
rebuilds the carried streak from closed days. DayRecord.bonus_earned marks
a day whose earn is already in the ledger balance, so reprocessing today
applies only a change in that outcome: identical inputs give identical
(streak, ledger), and a balance set by hand in between is kept.

Public API
----------
carried_streak(store, end_day)                               -> int
reconciliation_window(ledger, today)                         -> (seed, today)
reconcile(store, today, goal_target, activity_by_day, ledger) -> ReconcileResult
refresh_streak(store, source, today, goal_target)            -> ReconcileResult
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Mapping, Optional

from stepstreak.core.dates import iter_days, next_day, previous_day, to_local_day
from stepstreak.core.errors import (
    ClockMovedBackwardError,
    InvalidGoalTargetError,
    ReconciliationFailedError,
)
from stepstreak.services.activity import ActivitySource, ActivitySourceError
from stepstreak.services.records import DayRecord, Ledger, RecordStore, RecordStoreError

logger = logging.getLogger(__name__)

# One reconciliation in flight per process; the ledger is the shared resource.
writer_lock = threading.Lock()

# Stored history is read backward in pages of this many days.
CARRY_PAGE_DAYS = 64


@dataclass
class ReconcileResult:
    streak: int
    ledger: Ledger
    carried_streak: int
    processed: list[DayRecord] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _normalize_amounts(activity_by_day: Mapping[date | datetime, int]) -> dict[date, int]:
    amounts: dict[date, int] = {}
    for key, value in activity_by_day.items():
        day = to_local_day(key)
        amounts[day] = amounts.get(day, 0) + int(value or 0)
    return amounts


def _load_ledger(store: RecordStore, today: date, ledger: Optional[Ledger]) -> Ledger:
    if ledger is None:
        ledger = store.get_ledger()
    if ledger is None:
        logger.info("No bonus ledger found; starting a fresh one on %s", today)
        return Ledger.default(today)
    return ledger.repaired(today)


def carried_streak(store: RecordStore, end_day: date) -> int:
    """Count consecutive credited days ending at end_day, from stored records only."""
    streak = 0
    current = end_day
    while True:
        page_start = current - timedelta(days=CARRY_PAGE_DAYS - 1)
        by_day = {r.day: r for r in store.records_between(page_start, current)}
        while current >= page_start:
            record = by_day.get(current)
            if record is None or not record.credited:
                return streak
            streak += 1
            current = previous_day(current)


def reconciliation_window(ledger: Ledger, today: date) -> tuple[date, date]:
    """Days that the next reconciliation will (re)process, inclusive."""
    if ledger.watermark is None:
        return today, today
    return min(next_day(ledger.watermark), today), today


# ---------------------------------------------------------------------------
# Core
# ---------------------------------------------------------------------------

def _walk(
    store: RecordStore,
    today: date,
    goal_target: int,
    amounts: dict[date, int],
    ledger: Ledger,
) -> ReconcileResult:
    seed, _ = reconciliation_window(ledger, today)
    carried = carried_streak(store, previous_day(seed))
    existing_by_day = {r.day: r for r in store.records_between(seed, today)}
    streak = carried
    balance = ledger.balance

    processed: list[DayRecord] = []
    for day in iter_days(seed, today):
        amount = amounts.get(day, 0)
        existing = existing_by_day.get(day)
        goal = existing.goal if existing is not None and existing.goal > 0 else goal_target
        bonus_used = False

        if amount >= goal:
            streak += 1
        elif day != today and balance > 0:
            balance -= 1
            streak += 1
            bonus_used = True
        else:
            streak = 0

        bonus_earned = streak > 0 and ledger.earn_every_n > 0 and streak % ledger.earn_every_n == 0
        # The watermark day's earn is already in ledger.balance; apply only the change.
        already_earned = day == ledger.watermark and existing is not None and existing.bonus_earned
        if bonus_earned and not already_earned:
            balance = min(balance + 1, ledger.max_balance)
        elif already_earned and not bonus_earned:
            balance = max(balance - 1, 0)

        logger.debug(
            "day=%s amount=%s goal=%s bonus_used=%s bonus_earned=%s streak=%s balance=%s",
            day, amount, goal, bonus_used, bonus_earned, streak, balance,
        )
        processed.append(DayRecord(
            day=day,
            goal=goal,
            actual=amount,
            bonus_used=bonus_used,
            bonus_earned=bonus_earned,
        ))

    updated = ledger.copy()
    updated.balance = balance
    updated.watermark = today
    return ReconcileResult(streak=streak, ledger=updated, carried_streak=carried, processed=processed)


def reconcile(
    store: RecordStore,
    today: date,
    goal_target: int,
    activity_by_day: Mapping[date | datetime, int],
    ledger: Optional[Ledger] = None,
) -> ReconcileResult:
    """
    Reconcile every day from the ledger watermark through today.

    `activity_by_day` must cover the reconciliation window; days it omits
    count as zero. When `ledger` is None the stored ledger is used, or a
    fresh default one if none exists yet.

    All record and ledger writes land in a single commit. On storage failure
    nothing is committed and ReconciliationFailedError is raised.
    """
    today = to_local_day(today)
    if goal_target is None or goal_target <= 0:
        logger.warning("Rejected reconciliation for %s: goal_target=%s", today, goal_target)
        raise InvalidGoalTargetError(goal_target)

    amounts = _normalize_amounts(activity_by_day)

    with writer_lock:
        try:
            current = _load_ledger(store, today, ledger)
            if current.watermark is not None and today < current.watermark:
                logger.warning(
                    "Rejected reconciliation for %s: already reconciled through %s",
                    today, current.watermark,
                )
                raise ClockMovedBackwardError(today=today, watermark=current.watermark)

            result = _walk(store, today, goal_target, amounts, current)

            for record in result.processed:
                store.put_record(record)
            store.put_ledger(result.ledger)
            store.commit()
        except RecordStoreError as exc:
            logger.exception("Reconciliation for %s aborted", today)
            store.rollback()
            raise ReconciliationFailedError(today=today, reason=str(exc)) from exc

    first = result.processed[0].day if result.processed else today
    logger.info(
        "Reconciled %s..%s: carried=%s streak=%s balance=%s/%s",
        first, today, result.carried_streak, result.streak,
        result.ledger.balance, result.ledger.max_balance,
    )
    return result


def refresh_streak(
    store: RecordStore,
    source: ActivitySource,
    today: date,
    goal_target: int,
) -> ReconcileResult:
    """Fetch the amounts the next reconciliation needs from `source`, then reconcile."""
    today = to_local_day(today)
    try:
        ledger = _load_ledger(store, today, None)
    except RecordStoreError as exc:
        logger.exception("Could not read bonus ledger before reconciling %s", today)
        raise ReconciliationFailedError(today=today, reason=str(exc)) from exc
    start, end = reconciliation_window(ledger, today)
    try:
        amounts = source.fetch_daily_amounts(start, end)
    except ActivitySourceError as exc:
        logger.exception("Could not read activity %s..%s", start, end)
        raise ReconciliationFailedError(today=today, reason=str(exc)) from exc
    return reconcile(store, today, goal_target, amounts)
