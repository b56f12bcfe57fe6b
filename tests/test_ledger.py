"""Tests for SessionLedger."""

import sqlite3
import uuid

import pytest

from conftest import at, closed_session
from kairos.core.errors import AmbiguousIdentifier, NotFound
from kairos.models.session import Session


def test_insert_assigns_id(ledger):
    """Inserting a session without id assigns a uuid."""
    session = ledger.insert(Session(start_time=at(2025, 1, 6, 9)))

    assert session.id is not None
    uuid.UUID(session.id)
    assert session.is_active
    assert ledger.count() == 1


def test_insert_keeps_given_id(ledger):
    session = ledger.insert(Session(id="fixed-id-0001", start_time=at(2025, 1, 6, 9)))
    assert session.id == "fixed-id-0001"


def test_storage_is_utc_with_local_date(ledger):
    """Instants are stored as UTC; the date column holds the local day."""
    session = closed_session(ledger, at(2025, 1, 6, 0, 30), at(2025, 1, 6, 8, 0))

    conn = sqlite3.connect(str(ledger.db_path))
    row = conn.execute(
        "SELECT date, start_time, end_time FROM work_sessions WHERE id = ?",
        (session.id,),
    ).fetchone()
    conn.close()

    assert row == ("2025-01-06", "2025-01-05T23:30:00", "2025-01-06T07:00:00")
    assert session.start_time == at(2025, 1, 6, 0, 30)
    assert session.start_time.utcoffset() == at(2025, 1, 6).utcoffset()
    assert session.date.isoformat() == "2025-01-06"


def test_update_replaces_fields(ledger):
    session = ledger.insert(Session(start_time=at(2025, 1, 6, 9), note="draft"))
    updated = ledger.update(
        session.model_copy(
            update={"end_time": at(2025, 1, 6, 17), "break_minutes": 30, "note": "done"}
        )
    )

    assert updated.end_time == at(2025, 1, 6, 17)
    assert updated.break_minutes == 30
    assert updated.note == "done"
    assert ledger.get_by_id(session.id).note == "done"


def test_update_unknown_id_raises(ledger):
    with pytest.raises(NotFound):
        ledger.update(Session(id="missing", start_time=at(2025, 1, 6, 9)))


class TestIdentifierResolution:
    """Full ids match exactly, short prefixes resolve when unique."""

    def test_full_id(self, ledger):
        session = ledger.insert(Session(start_time=at(2025, 1, 6, 9)))
        assert ledger.get_by_id(session.id).id == session.id

    def test_short_prefix(self, ledger):
        session = ledger.insert(Session(start_time=at(2025, 1, 6, 9)))
        assert ledger.get_by_id(session.short_id).id == session.id

    def test_longer_prefix(self, ledger):
        session = ledger.insert(Session(start_time=at(2025, 1, 6, 9)))
        assert ledger.get_by_id(session.id[:13]).id == session.id

    def test_prefix_too_short(self, ledger):
        session = ledger.insert(Session(start_time=at(2025, 1, 6, 9)))
        with pytest.raises(NotFound):
            ledger.get_by_id(session.id[:4])

    def test_unknown(self, ledger):
        ledger.insert(Session(start_time=at(2025, 1, 6, 9)))
        with pytest.raises(NotFound):
            ledger.get_by_id("ffffffff-0000")

    def test_ambiguous_prefix(self, ledger):
        ledger.insert(Session(id="abcd1234-aaaa", start_time=at(2025, 1, 6, 9)))
        ledger.insert(Session(id="abcd1234-bbbb", start_time=at(2025, 1, 7, 9)))

        with pytest.raises(AmbiguousIdentifier) as excinfo:
            ledger.get_by_id("abcd1234")
        assert sorted(excinfo.value.candidates) == ["abcd1234-aaaa", "abcd1234-bbbb"]

        assert ledger.get_by_id("abcd1234-b").id == "abcd1234-bbbb"

    def test_exact_match_wins_over_prefix(self, ledger):
        ledger.insert(Session(id="abcd1234", start_time=at(2025, 1, 6, 9)))
        ledger.insert(Session(id="abcd1234-bbbb", start_time=at(2025, 1, 7, 9)))
        assert ledger.get_by_id("abcd1234").id == "abcd1234"


def test_get_active(ledger):
    assert ledger.get_active() is None
    closed_session(ledger, at(2025, 1, 6, 9), at(2025, 1, 6, 17))
    active = ledger.insert(Session(start_time=at(2025, 1, 7, 9)))

    assert ledger.get_active().id == active.id


def test_get_in_range_intersects(ledger):
    """Overlapping sessions are returned ordered by start; active ones are open-ended."""
    overnight = closed_session(ledger, at(2025, 1, 5, 22), at(2025, 1, 6, 2))
    monday = closed_session(ledger, at(2025, 1, 6, 9), at(2025, 1, 6, 17))
    closed_session(ledger, at(2025, 1, 4, 9), at(2025, 1, 4, 17))
    active = ledger.insert(Session(start_time=at(2025, 1, 3, 9)))

    found = ledger.get_in_range(at(2025, 1, 6), at(2025, 1, 6, 23, 59, 59))

    assert [s.id for s in found] == [active.id, overnight.id, monday.id]


def test_get_in_range_is_inclusive(ledger):
    session = closed_session(ledger, at(2025, 1, 6, 9), at(2025, 1, 6, 17))
    assert ledger.get_in_range(at(2025, 1, 6, 17), at(2025, 1, 6, 18))[0].id == session.id
    assert ledger.get_in_range(at(2025, 1, 6, 8), at(2025, 1, 6, 9))[0].id == session.id
    assert ledger.get_in_range(at(2025, 1, 6, 17, 0, 1), at(2025, 1, 6, 18)) == []


def test_get_started_in_range(ledger):
    closed_session(ledger, at(2025, 1, 5, 22), at(2025, 1, 6, 2))
    monday = closed_session(ledger, at(2025, 1, 6, 9), at(2025, 1, 6, 17))

    found = ledger.get_started_in_range(at(2025, 1, 6), at(2025, 1, 6, 23, 59, 59))
    assert [s.id for s in found] == [monday.id]


def test_delete_by_id(ledger):
    session = closed_session(ledger, at(2025, 1, 6, 9), at(2025, 1, 6, 17))
    deleted = ledger.delete_by_id(session.short_id)

    assert deleted.id == session.id
    assert ledger.count() == 0
    with pytest.raises(NotFound):
        ledger.delete_by_id(session.id)


def test_delete_in_range(ledger):
    closed_session(ledger, at(2024, 12, 31, 22), at(2025, 1, 1, 2))
    closed_session(ledger, at(2025, 1, 6, 9), at(2025, 1, 6, 17))
    active = ledger.insert(Session(start_time=at(2025, 1, 31, 9)))
    keep = closed_session(ledger, at(2025, 2, 1, 9), at(2025, 2, 1, 17))

    deleted = ledger.delete_in_range(
        at(2025, 1, 1), at(2025, 1, 31, 23, 59, 59), closed_only=True
    )
    assert deleted == 1
    remaining = {s.id for s in ledger.get_started_in_range(at(2024, 1, 1), at(2026, 1, 1))}
    assert active.id in remaining and keep.id in remaining
    assert len(remaining) == 3

    assert ledger.delete_in_range(at(2025, 1, 1), at(2025, 1, 31, 23, 59, 59)) == 1
    assert ledger.get_active() is None


def test_oldest_session_date(ledger):
    assert ledger.oldest_session_date() is None
    closed_session(ledger, at(2025, 3, 3, 9), at(2025, 3, 3, 17))
    # 00:30 local is still the previous day in UTC
    closed_session(ledger, at(2025, 2, 1, 0, 30), at(2025, 2, 1, 8))

    assert ledger.oldest_session_date().isoformat() == "2025-02-01"
