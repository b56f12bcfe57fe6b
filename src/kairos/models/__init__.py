"""Data models for Kairos."""

from .archive import MonthSummary, SessionRecord
from .progress import DayProgress, MonthProgress, WeekProgress
from .session import SHORT_ID_LENGTH, Session

__all__ = [
    "Session",
    "SHORT_ID_LENGTH",
    "DayProgress",
    "WeekProgress",
    "MonthProgress",
    "MonthSummary",
    "SessionRecord",
]
