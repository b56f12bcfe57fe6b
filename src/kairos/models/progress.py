"""Computed progress views over the session ledger."""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from .session import Session


class DayProgress(BaseModel):
    """Hours worked on one local calendar day."""

    date: date
    sessions: List[Session] = []
    total_hours: float = 0.0
    current_session_id: Optional[str] = None


class WeekProgress(BaseModel):
    """Hours worked in one Monday-to-Sunday week against the weekly goal."""

    week_start: datetime
    week_end: datetime
    goal_hours: float
    total_hours: float = 0.0
    days_worked: Dict[date, float] = {}
    days_worked_count: int = 0
    remaining_hours: float = 0.0
    remaining_work_days: int = 0
    required_daily_hours: float = 0.0
    sessions: List[Session] = []

    @property
    def is_over_goal(self) -> bool:
        return self.remaining_hours < 0


class MonthProgress(BaseModel):
    """Hours worked from the first of the month up to now."""

    month: datetime
    total_hours: float = 0.0
    daily_average: float = 0.0
    week_hours: Dict[int, float] = {}
    week_count: int = 0
    sessions: List[Session] = []
