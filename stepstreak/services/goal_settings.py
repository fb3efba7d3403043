"""
Goal & bonus settings.

The daily goal lives in `goal_settings`; the bonus configuration
(max_balance, earn_every_n) and a manually adjustable balance live on the
ledger itself. Changing the goal never rewrites stored day records: each
day keeps the goal it was first reconciled with.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stepstreak.core.config import settings
from stepstreak.core.dates import local_today
from stepstreak.core.errors import InvalidGoalTargetError, StorageUnavailableError
from stepstreak.models.goal_settings import GoalSettings, SETTINGS_ID
from stepstreak.services.records import Ledger, RecordStoreError, SqlAlchemyRecordStore
from stepstreak.services.streak_engine import writer_lock

logger = logging.getLogger(__name__)


@dataclass
class SettingsView:
    daily_goal: int
    earn_every_n: int
    max_balance: int
    balance: int


def get_daily_goal(db: Session) -> int:
    row = db.get(GoalSettings, SETTINGS_ID)
    return row.daily_goal if row is not None else settings.DEFAULT_DAILY_GOAL


def _current_ledger(store: SqlAlchemyRecordStore, today: date) -> Ledger:
    ledger = store.get_ledger()
    return ledger.repaired(today) if ledger is not None else Ledger.default(today)


def get_settings(db: Session, today: Optional[date] = None) -> SettingsView:
    ledger = _current_ledger(SqlAlchemyRecordStore(db), today or local_today())
    return SettingsView(
        daily_goal=get_daily_goal(db),
        earn_every_n=ledger.earn_every_n,
        max_balance=ledger.max_balance,
        balance=ledger.balance,
    )


def update_settings(
    db: Session,
    daily_goal: Optional[int] = None,
    earn_every_n: Optional[int] = None,
    max_balance: Optional[int] = None,
    balance: Optional[int] = None,
    today: Optional[date] = None,
) -> SettingsView:
    """
    Partial update. `balance` is clamped into [0, max_balance]; lowering
    `max_balance` re-clamps the current balance.
    """
    if daily_goal is not None and daily_goal <= 0:
        raise InvalidGoalTargetError(daily_goal)

    today = today or local_today()
    store = SqlAlchemyRecordStore(db)

    with writer_lock:
        try:
            if daily_goal is not None:
                row = db.get(GoalSettings, SETTINGS_ID)
                if row is None:
                    row = GoalSettings(id=SETTINGS_ID)
                    db.add(row)
                row.daily_goal = daily_goal

            ledger = _current_ledger(store, today)
            if earn_every_n is not None:
                ledger.earn_every_n = earn_every_n
            if max_balance is not None:
                ledger.max_balance = max(max_balance, 0)
            if balance is not None:
                ledger.balance = balance
            ledger.balance = max(0, min(ledger.balance, ledger.max_balance))
            store.put_ledger(ledger)
            store.commit()
        except (RecordStoreError, SQLAlchemyError) as exc:
            logger.exception("Settings update aborted")
            store.rollback()
            raise StorageUnavailableError(reason=str(exc)) from exc

    logger.info(
        "Settings updated: goal=%s earn_every_n=%s max_balance=%s balance=%s",
        daily_goal, ledger.earn_every_n, ledger.max_balance, ledger.balance,
    )
    return get_settings(db, today)
