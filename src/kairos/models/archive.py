"""Archive record models for compacted months."""

from datetime import date
from typing import Dict, List

from pydantic import BaseModel


class SessionRecord(BaseModel):
    """Simplified session row written to a monthly archive."""

    date: str
    start_time: str
    end_time: str
    hours: float
    break_minutes: int
    note: str = ""


class MonthSummary(BaseModel):
    """Aggregated content of one archived month."""

    month: date
    total_hours: float = 0.0
    days_worked: int = 0
    weekly_goal: float
    week_breakdown: Dict[int, float] = {}
    sessions: List[SessionRecord] = []

    @property
    def label(self) -> str:
        return f"{self.month.year}-{self.month.month:02d}"

    @property
    def daily_average(self) -> float:
        return self.total_hours / max(self.days_worked, 1)
