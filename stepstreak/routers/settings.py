"""
Settings router.

GET /settings  — daily goal and bonus configuration
PUT /settings  — partial update
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stepstreak.db.base import get_db
from stepstreak.schemas.common import ErrorResponse
from stepstreak.schemas.settings import SettingsOut, SettingsUpdate
from stepstreak.services.goal_settings import SettingsView, get_settings, update_settings

router = APIRouter(prefix="/settings", tags=["settings"])


def _to_out(view: SettingsView) -> SettingsOut:
    return SettingsOut(
        daily_goal=view.daily_goal,
        earn_every_n=view.earn_every_n,
        max_balance=view.max_balance,
        balance=view.balance,
    )


@router.get("", response_model=SettingsOut, summary="Current goal and bonus settings")
def read_settings(db: Session = Depends(get_db)):
    return _to_out(get_settings(db))


@router.put(
    "",
    response_model=SettingsOut,
    summary="Update goal and bonus settings",
    responses={
        422: {"model": ErrorResponse, "description": "daily_goal <= 0 or max_balance < 0."},
        503: {"model": ErrorResponse, "description": "Storage failed; nothing was saved."},
    },
)
def put_settings(payload: SettingsUpdate, db: Session = Depends(get_db)):
    """
    A new `daily_goal` applies from the next day that has not been reconciled
    yet; days already on record keep the goal they were judged against.

    A `balance` set here is kept when today is reconciled again; only a
    later change in today's earn moves it.
    """
    return _to_out(update_settings(
        db,
        daily_goal=payload.daily_goal,
        earn_every_n=payload.earn_every_n,
        max_balance=payload.max_balance,
        balance=payload.balance,
    ))
