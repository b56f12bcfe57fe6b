"""Day, week and month progress computed from the ledger."""

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from kairos.core.clock import Clock
from kairos.core.ledger import SessionLedger
from kairos.core.rules import WorkRules
from kairos.models.progress import DayProgress, MonthProgress, WeekProgress
from kairos.models.session import Session


def week_start(day: date) -> date:
    """Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def closed_hours(sessions: Iterable[Session]) -> float:
    return sum(s.duration_hours for s in sessions if not s.is_active)


class ProgressTracker:
    """Read-only aggregation over the session ledger."""

    def __init__(self, ledger: SessionLedger, rules: WorkRules, clock: Clock):
        self.ledger = ledger
        self.rules = rules
        self.clock = clock

    @property
    def weekly_goal(self) -> float:
        return self.rules.weekly_goal

    def _as_date(self, value: Union[date, datetime, None]) -> date:
        if value is None:
            return self.clock.today()
        if isinstance(value, datetime):
            return self.clock.localize(value).date()
        return value

    def day_progress(self, now: Optional[datetime] = None) -> DayProgress:
        """Committed hours for the local day containing `now`.

        An active session is reported through `current_session_id` and adds
        nothing to the total.
        """
        day = self._as_date(now)
        sessions = self.ledger.get_in_range(
            self.clock.start_of_day(day), self.clock.end_of_day(day)
        )
        progress = DayProgress(date=day, sessions=sessions)
        for session in sessions:
            if session.is_active:
                progress.current_session_id = session.id
            else:
                progress.total_hours += session.duration_hours
        return progress

    def week_progress(self, any_date: Union[date, datetime, None] = None) -> WeekProgress:
        return self._compute_week(week_start(self._as_date(any_date)))

    def week_progress_for_date(self, day: Union[date, datetime]) -> WeekProgress:
        return self.week_progress(day)

    def last_week_progress(self, now: Optional[datetime] = None) -> WeekProgress:
        monday = week_start(self._as_date(now)) - timedelta(days=7)
        return self._compute_week(monday)

    def _compute_week(self, monday: date) -> WeekProgress:
        sunday = monday + timedelta(days=6)
        start = self.clock.start_of_day(monday)
        end = self.clock.end_of_day(sunday)
        sessions = self.ledger.get_started_in_range(start, end)

        days_worked = defaultdict(float)
        total = 0.0
        for session in sessions:
            if session.is_active:
                continue
            hours = session.duration_hours
            total += hours
            days_worked[session.date] += hours

        today = self.clock.today()
        if today < monday:
            remaining_days = self.rules.remaining_work_days(monday)
        elif today > sunday:
            remaining_days = 0
        else:
            remaining_days = self.rules.remaining_work_days(today)

        return WeekProgress(
            week_start=start,
            week_end=end,
            goal_hours=self.rules.weekly_goal,
            total_hours=total,
            days_worked=dict(days_worked),
            days_worked_count=sum(1 for hours in days_worked.values() if hours != 0),
            remaining_hours=self.rules.weekly_goal - total,
            remaining_work_days=remaining_days,
            required_daily_hours=self.rules.required_daily_hours(total, remaining_days),
            sessions=sessions,
        )

    def month_progress(self, now: Optional[datetime] = None) -> MonthProgress:
        """Hours from the first of the month through `now` (partial month)."""
        now = self.clock.localize(now) if now is not None else self.clock.now()
        month_start = self.clock.start_of_day(now.date().replace(day=1))
        sessions = self.ledger.get_started_in_range(month_start, now)

        week_hours = defaultdict(float)
        total = 0.0
        for session in sessions:
            if session.is_active:
                continue
            hours = session.duration_hours
            total += hours
            week_hours[session.date.isocalendar()[1]] += hours

        return MonthProgress(
            month=month_start,
            total_hours=total,
            daily_average=total / now.day,
            week_hours=dict(week_hours),
            week_count=len(week_hours),
            sessions=sessions,
        )
