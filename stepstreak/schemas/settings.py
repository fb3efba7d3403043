from typing import Optional
from pydantic import BaseModel, Field


class SettingsOut(BaseModel):
    daily_goal: int
    earn_every_n: int
    max_balance: int
    balance: int


class SettingsUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    daily_goal: Optional[int] = Field(default=None, gt=0, examples=[10_000])
    earn_every_n: Optional[int] = Field(
        default=None,
        description="Credited days per earned bonus. 0 or less disables earning.",
        examples=[7],
    )
    max_balance: Optional[int] = Field(default=None, ge=0, examples=[3])
    balance: Optional[int] = Field(
        default=None,
        description="Manual balance adjustment, clamped into [0, max_balance].",
    )
