from .day_record import DayRecord
from .bonus_ledger import BonusLedger
from .daily_activity import DailyActivity
from .goal_settings import GoalSettings

__all__ = [
    "DayRecord",
    "BonusLedger",
    "DailyActivity",
    "GoalSettings",
]
