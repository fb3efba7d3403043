"""
BonusLedger — singleton row (id=1) holding the bonus-day balance.

watermark: last calendar day fully reconciled. Only moves forward.
earn_every_n <= 0 disables automatic earning.
"""
from datetime import datetime, date
from sqlalchemy import Integer, DateTime, Date, func
from sqlalchemy.orm import Mapped, mapped_column

from stepstreak.db.base import Base

LEDGER_ID = 1


class BonusLedger(Base):
    __tablename__ = "bonus_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=LEDGER_ID)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    earn_every_n: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    watermark: Mapped[date] = mapped_column(Date, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
