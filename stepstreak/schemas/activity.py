"""
Activity ingest schemas.

POST /activity  → ActivityBatchRequest → ActivityBatchResponse
GET  /activity  → ActivityRangeResponse
"""
from __future__ import annotations

from datetime import date
from typing import Annotated, Optional

from pydantic import BaseModel, Field

ACTIVITY_MAX_ITEMS = 366


class ActivityIn(BaseModel):
    day: date = Field(description="Local calendar day.", examples=["2026-02-20"])
    amount: Annotated[int, Field(
        ge=0,
        description="Activity total for the day (steps).",
        examples=[10_432],
    )]


class ActivityBatchRequest(BaseModel):
    """Daily totals to store. A repeated day overwrites the earlier value."""
    items: Annotated[list[ActivityIn], Field(
        min_length=1,
        max_length=ACTIVITY_MAX_ITEMS,
        description=f"Daily totals (1–{ACTIVITY_MAX_ITEMS} items).",
    )]
    source: Optional[str] = Field(
        default=None,
        max_length=32,
        description="Where the totals came from (e.g. 'healthkit', 'manual').",
        examples=["healthkit"],
    )


class ActivityOut(BaseModel):
    day: str
    amount: int


class ActivityBatchResponse(BaseModel):
    stored: int = Field(description="Number of distinct days written.")
    items: list[ActivityOut]


class ActivityRangeResponse(BaseModel):
    start_date: str
    end_date: str
    total: int = Field(description="Sum of amounts in the range.")
    items: list[ActivityOut] = Field(description="One item per day, missing days as 0.")
