"""
DayRecord — one row per calendar day the streak engine has reconciled.

`goal` is written once, the first time the day is processed, and never
changed afterwards (sticky goal). `actual`, `bonus_used` and `bonus_earned`
are rewritten each time the day is re-reconciled while it is still "today".
`bonus_earned` marks a day whose earn has been applied to the ledger
(including one absorbed by the max_balance cap). Rows are never deleted.
"""
from datetime import datetime, date
from sqlalchemy import Integer, Boolean, DateTime, Date, func, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stepstreak.db.base import Base


class DayRecord(Base):
    __tablename__ = "day_records"
    __table_args__ = (
        CheckConstraint("goal > 0", name="ck_day_records_goal_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    day: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    goal: Mapped[int] = mapped_column(Integer, nullable=False)
    actual: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bonus_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bonus_earned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
