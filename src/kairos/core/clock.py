"""Time provider and time-of-day parsing.

Every component that needs "now" or the configured zone gets it from one
`Clock` instance built at startup.
"""

import logging
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from kairos.core.errors import InvalidTimeFormat

logger = logging.getLogger(__name__)

TIME_FORMATS = ["%H:%M", "%H:%M:%S", "%I:%M%p", "%I:%M %p"]

_OFFSET_RE = re.compile(r"^([+-])(\d{1,2})(?::?(\d{2}))?$")


def local_zone() -> tzinfo:
    """Zone of the host process."""
    return datetime.now().astimezone().tzinfo


def parse_timezone(value: Optional[str]) -> tzinfo:
    """Resolve a configured zone name.

    Accepts "local", IANA names, UTC/GMT/Z and numeric offsets such as
    "+02:00", "-0530" or "UTC+2". Unknown names fall back to the local zone.
    """
    name = (value or "").strip()
    if not name or name.lower() == "local":
        return local_zone()

    upper = name.upper()
    if upper in ("UTC", "GMT", "Z"):
        return timezone.utc
    if upper.startswith(("UTC", "GMT")):
        rest = name[3:].strip()
        if not rest or rest.upper() == "Z":
            return timezone.utc
        zone = _parse_offset(rest)
        if zone is not None:
            return zone
    if name[0] in "+-":
        zone = _parse_offset(name)
        if zone is not None:
            return zone

    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, using local time", name)
        return local_zone()


def _parse_offset(value: str) -> Optional[tzinfo]:
    match = _OFFSET_RE.match(value.strip())
    if not match:
        return None
    sign, hours, minutes = match.groups()
    hours = int(hours)
    minutes = int(minutes or 0)
    if hours > 23 or minutes >= 60:
        return None
    offset = timedelta(hours=hours, minutes=minutes)
    if sign == "-":
        offset = -offset
    return timezone(offset)


def parse_clock_time(value: str) -> time:
    """Parse a wall-clock time such as "8:45", "17:30:15" or "5:30pm"."""
    text = value.strip().upper()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise InvalidTimeFormat(value)


def is_valid_time(value: str) -> bool:
    try:
        parse_clock_time(value)
    except InvalidTimeFormat:
        return False
    return True


class Clock:
    """Current time in the configured zone."""

    def __init__(self, zone: Optional[tzinfo] = None):
        self.zone = zone or local_zone()

    def now(self) -> datetime:
        return datetime.now(self.zone)

    def today(self) -> date:
        return self.now().date()

    def localize(self, value: datetime) -> datetime:
        """Express `value` in the configured zone; naive values are taken as local."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.zone)
        return value.astimezone(self.zone)

    def start_of_day(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.zone)

    def end_of_day(self, day: date) -> datetime:
        return datetime.combine(day, time(23, 59, 59), tzinfo=self.zone)

    def at_time(self, day: date, value: str) -> datetime:
        """Place a parsed time-of-day on the given local calendar day."""
        parsed = parse_clock_time(value)
        return datetime.combine(day, parsed, tzinfo=self.zone)
