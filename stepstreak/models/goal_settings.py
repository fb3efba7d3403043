from datetime import datetime
from sqlalchemy import Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from stepstreak.db.base import Base

SETTINGS_ID = 1


class GoalSettings(Base):
    """Singleton row (id=1). Current global daily goal; applies to days not yet reconciled."""

    __tablename__ = "goal_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SETTINGS_ID)
    daily_goal: Mapped[int] = mapped_column(Integer, nullable=False, default=10_000)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
