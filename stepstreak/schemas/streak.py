"""
Streak schemas.

POST /streak/reconcile → ReconcileRequest → ReconcileResponse
GET  /streak/ledger    → LedgerOut
GET  /streak/records   → DayRecordListResponse
"""
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class ReconcileRequest(BaseModel):
    today: Optional[date] = Field(
        default=None,
        description="Day to reconcile through. Defaults to today in the configured timezone.",
        examples=["2026-02-20"],
    )


class LedgerOut(BaseModel):
    balance: int = Field(description="Bonus days available to spend.")
    max_balance: int
    earn_every_n: int = Field(description="Consecutive credited days per earned bonus; <= 0 disables.")
    watermark: Optional[str] = Field(default=None, description="Last fully reconciled day.")


class DayRecordOut(BaseModel):
    day: str
    goal: int
    actual: int
    bonus_used: bool
    achieved: bool


class ReconcileResponse(BaseModel):
    streak: int
    carried_streak: int = Field(description="Streak carried in from days already closed.")
    ledger: LedgerOut
    days: list[DayRecordOut] = Field(description="Days processed in this call, oldest first.")


class DayRecordListResponse(BaseModel):
    total: int
    items: list[DayRecordOut]
