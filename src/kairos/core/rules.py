"""Work rules: break policy, work days and goal math.

Defaults follow common Austrian rules: a 38.5 hour week, a 30 minute
break Monday to Thursday and no break on Friday.
"""

from dataclasses import dataclass
from datetime import date

WORK_DAYS_PER_WEEK = 5
FRIDAY = 4


@dataclass(frozen=True)
class WorkRules:
    weekly_goal: float = 38.5
    default_break_minutes: int = 30
    reduced_break_weekday: int = FRIDAY
    reduced_break_minutes: int = 0

    @property
    def daily_target_hours(self) -> float:
        return self.weekly_goal / WORK_DAYS_PER_WEEK

    def break_minutes_for_day(self, day: date) -> int:
        """Break to deduct for a session attributed to `day`."""
        if day.weekday() == self.reduced_break_weekday:
            return self.reduced_break_minutes
        return self.default_break_minutes

    def is_work_day(self, day: date) -> bool:
        return day.weekday() <= FRIDAY

    def remaining_work_days(self, day: date) -> int:
        """Work days left in the week of `day`, counting `day` itself."""
        if not self.is_work_day(day):
            return 0
        return FRIDAY - day.weekday() + 1

    def required_daily_hours(self, hours_worked: float, remaining_days: int) -> float:
        """Hours needed on each remaining day to reach the weekly goal."""
        if remaining_days <= 0:
            return 0.0
        remaining = self.weekly_goal - hours_worked
        if remaining <= 0:
            return 0.0
        return remaining / remaining_days
