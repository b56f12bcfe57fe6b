"""Tests for time zone resolution and time-of-day parsing."""

from datetime import date, time, timedelta, timezone

import pytest

from kairos.core.clock import (
    Clock,
    is_valid_time,
    local_zone,
    parse_clock_time,
    parse_timezone,
)
from kairos.core.errors import InvalidTimeFormat


@pytest.mark.parametrize("name", ["UTC", "utc", "GMT", "Z", "UTC+0", "GMTZ"])
def test_parse_timezone_utc(name):
    zone = parse_timezone(name)
    assert zone.utcoffset(None) == timedelta(0)


@pytest.mark.parametrize(
    "name,offset",
    [
        ("+02:00", timedelta(hours=2)),
        ("-0530", -timedelta(hours=5, minutes=30)),
        ("UTC-5", -timedelta(hours=5)),
        ("GMT+01:30", timedelta(hours=1, minutes=30)),
    ],
)
def test_parse_timezone_offsets(name, offset):
    assert parse_timezone(name).utcoffset(None) == offset


def test_parse_timezone_local_and_unknown():
    local_offset = local_zone().utcoffset(None)
    assert parse_timezone("local").utcoffset(None) == local_offset
    assert parse_timezone("").utcoffset(None) == local_offset
    assert parse_timezone("Not/AZone").utcoffset(None) == local_offset


@pytest.mark.parametrize(
    "value,expected",
    [
        ("8:45", time(8, 45)),
        ("08:45", time(8, 45)),
        ("17:30:15", time(17, 30, 15)),
        ("5:30pm", time(17, 30)),
        (" 22:00 ", time(22, 0)),
    ],
)
def test_parse_clock_time(value, expected):
    assert parse_clock_time(value) == expected


@pytest.mark.parametrize("value", ["", "25:00", "noon", "8h45", "12:61"])
def test_parse_clock_time_invalid(value):
    with pytest.raises(InvalidTimeFormat):
        parse_clock_time(value)
    assert not is_valid_time(value)


def test_clock_day_helpers():
    zone = timezone(timedelta(hours=1))
    clock = Clock(zone)
    day = date(2025, 1, 6)

    assert clock.start_of_day(day).isoformat() == "2025-01-06T00:00:00+01:00"
    assert clock.end_of_day(day).isoformat() == "2025-01-06T23:59:59+01:00"
    assert clock.at_time(day, "9:15").isoformat() == "2025-01-06T09:15:00+01:00"


def test_clock_localize():
    zone = timezone(timedelta(hours=1))
    clock = Clock(zone)
    utc_value = clock.at_time(date(2025, 1, 6), "23:30").astimezone(timezone.utc)

    assert clock.localize(utc_value).hour == 23
    naive = utc_value.replace(tzinfo=None)
    assert clock.localize(naive).utcoffset() == timedelta(hours=1)
