"""Tests for WorkRules."""

from datetime import date, timedelta

import pytest

from kairos.core.rules import WorkRules

MONDAY = date(2025, 1, 6)


def test_break_minutes_default_and_friday():
    """Mon-Thu get the default break, Friday the reduced one."""
    rules = WorkRules()
    for offset in range(4):
        assert rules.break_minutes_for_day(MONDAY + timedelta(days=offset)) == 30
    assert rules.break_minutes_for_day(MONDAY + timedelta(days=4)) == 0
    assert rules.break_minutes_for_day(MONDAY + timedelta(days=5)) == 30


def test_break_minutes_configurable():
    rules = WorkRules(default_break_minutes=45, reduced_break_weekday=2, reduced_break_minutes=15)
    assert rules.break_minutes_for_day(MONDAY) == 45
    assert rules.break_minutes_for_day(MONDAY + timedelta(days=2)) == 15
    assert rules.break_minutes_for_day(MONDAY + timedelta(days=4)) == 45


def test_is_work_day():
    rules = WorkRules()
    days = [MONDAY + timedelta(days=i) for i in range(7)]
    assert [rules.is_work_day(d) for d in days] == [True] * 5 + [False] * 2


def test_remaining_work_days_decreases_through_week():
    """Monday has 5 days left, Friday 1, the weekend none."""
    rules = WorkRules()
    remaining = [rules.remaining_work_days(MONDAY + timedelta(days=i)) for i in range(7)]
    assert remaining == [5, 4, 3, 2, 1, 0, 0]


@pytest.mark.parametrize(
    "worked,days,expected",
    [
        (15.5, 3, 23.0 / 3),
        (38.5, 2, 0.0),
        (40.0, 1, 0.0),
        (10.0, 0, 0.0),
        (10.0, -1, 0.0),
    ],
)
def test_required_daily_hours(worked, days, expected):
    rules = WorkRules(weekly_goal=38.5)
    assert rules.required_daily_hours(worked, days) == pytest.approx(expected)


def test_daily_target_hours():
    assert WorkRules(weekly_goal=40).daily_target_hours == pytest.approx(8.0)
