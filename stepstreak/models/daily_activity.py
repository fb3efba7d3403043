from datetime import datetime, date
from sqlalchemy import Integer, String, DateTime, Date, func, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stepstreak.db.base import Base


class DailyActivity(Base):
    """Activity total (steps) for one local calendar day, as last reported by the device."""

    __tablename__ = "daily_activity"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_daily_activity_amount_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    day: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
