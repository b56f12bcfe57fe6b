"""Shared fixtures: a frozen clock in a fixed +01:00 zone and a temp ledger."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from kairos.core.archive import Archiver
from kairos.core.clock import Clock
from kairos.core.ledger import SessionLedger
from kairos.core.lifecycle import SessionLifecycle
from kairos.core.rules import WorkRules
from kairos.core.tracker import ProgressTracker
from kairos.models.session import Session

TZ = timezone(timedelta(hours=1))


def at(year, month, day, hour=0, minute=0, second=0) -> datetime:
    """Aware datetime in the test zone."""
    return datetime(year, month, day, hour, minute, second, tzinfo=TZ)


class FixedClock(Clock):
    """Clock whose "now" only changes when a test moves it."""

    def __init__(self, now: datetime, zone=TZ):
        super().__init__(zone)
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now


def closed_session(ledger, start: datetime, end: datetime, break_minutes=0, note=None):
    return ledger.insert(
        Session(start_time=start, end_time=end, break_minutes=break_minutes, note=note)
    )


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def clock():
    # Wednesday
    return FixedClock(at(2025, 1, 8, 12, 0))


@pytest.fixture
def rules():
    return WorkRules(weekly_goal=38.5)


@pytest.fixture
def ledger(temp_dir, clock):
    ledger = SessionLedger(temp_dir / "data.db", clock)
    yield ledger
    ledger.close()


@pytest.fixture
def tracker(ledger, rules, clock):
    return ProgressTracker(ledger, rules, clock)


@pytest.fixture
def lifecycle(ledger, rules, clock):
    return SessionLifecycle(ledger, rules, clock)


@pytest.fixture
def archiver(ledger, temp_dir, clock):
    return Archiver(ledger, temp_dir / "history", clock, weekly_goal=38.5)
