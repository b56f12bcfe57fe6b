"""Clock-in, clock-out, edit and delete on top of the ledger."""

import logging
from datetime import timedelta
from typing import Optional

from kairos.core.clock import Clock
from kairos.core.errors import AlreadyActive, NotFound, SessionNotActive
from kairos.core.ledger import SessionLedger
from kairos.core.rules import WorkRules
from kairos.models.session import Session

logger = logging.getLogger(__name__)


class SessionLifecycle:
    """State machine over the ledger: Idle (no open session) or Active.

    This is the only write path callers use; it keeps at most one session
    without an end time.
    """

    def __init__(self, ledger: SessionLedger, rules: WorkRules, clock: Clock):
        self.ledger = ledger
        self.rules = rules
        self.clock = clock

    def active(self) -> Optional[Session]:
        return self.ledger.get_active()

    def clock_in(
        self,
        note: str = "",
        start_override: Optional[str] = None,
        close_active_at: Optional[str] = None,
        close_break_minutes: Optional[int] = None,
    ) -> Session:
        """Open a new session.

        `start_override` is a local time of day; when it lies after the
        current time it is taken to mean the previous day. If a session is
        already open, `close_active_at` must name its end time, otherwise
        AlreadyActive is raised.
        """
        with self.ledger.locked():
            now = self.clock.now()
            start = now
            if start_override:
                start = self.clock.at_time(now.date(), start_override)
                if start > now:
                    start -= timedelta(days=1)

            active = self.ledger.get_active()
            if active is not None:
                if not close_active_at:
                    raise AlreadyActive(active)
                closed = self.clock_out(
                    active.id,
                    break_minutes=close_break_minutes,
                    end_override=close_active_at,
                )
                logger.info(
                    "Closed forgotten session %s at %s",
                    closed.short_id,
                    closed.end_time.strftime("%Y-%m-%d %H:%M"),
                )

            session = self.ledger.insert(
                Session(start_time=start, note=note or None)
            )
        logger.info("Clocked in session %s at %s", session.short_id, session.start_time)
        return session

    def clock_out(
        self,
        identifier: Optional[str] = None,
        break_minutes: Optional[int] = None,
        end_override: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Session:
        """Close the active session.

        The break defaults to the rule for the session's day. An end override
        is placed on the start date and moves to the next calendar day when it
        would precede the start.
        """
        with self.ledger.locked():
            if identifier:
                session = self.ledger.get_by_id(identifier)
            else:
                session = self.ledger.get_active()
                if session is None:
                    raise NotFound("active session")
            if not session.is_active:
                raise SessionNotActive(session)

            end = self.clock.now()
            if end_override:
                end = self._end_on_start_day(session, end_override)

            if break_minutes is None:
                break_minutes = self.rules.break_minutes_for_day(session.date)

            update = {"end_time": end, "break_minutes": break_minutes}
            if note:
                update["note"] = note
            updated = self.ledger.update(session.model_copy(update=update))
        logger.info("Clocked out session %s", updated.short_id)
        return updated

    def edit(
        self,
        identifier: str,
        break_minutes: Optional[int] = None,
        note: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> Session:
        """Change only the fields that are given; None leaves a field as is."""
        with self.ledger.locked():
            session = self.ledger.get_by_id(identifier)
            update = {}
            if break_minutes is not None:
                update["break_minutes"] = break_minutes
            if note is not None:
                update["note"] = note or None
            if start:
                update["start_time"] = self.clock.at_time(session.date, start)
            session = session.model_copy(update=update)
            if end:
                session = session.model_copy(
                    update={"end_time": self._end_on_start_day(session, end)}
                )
            updated = self.ledger.update(session)
        logger.info("Edited session %s", updated.short_id)
        return updated

    def delete(self, identifier: str) -> Session:
        deleted = self.ledger.delete_by_id(identifier)
        logger.info("Deleted session %s", deleted.short_id)
        return deleted

    def _end_on_start_day(self, session: Session, value: str):
        """Place an end time-of-day on the start date, or the next calendar day.

        The value is a local wall-clock time, so the rollover moves the date
        rather than adding 24 absolute hours; on a DST night the two differ.
        """
        start = self.clock.localize(session.start_time)
        end = self.clock.at_time(start.date(), value)
        if end.time() < start.time():
            end = self.clock.at_time(start.date() + timedelta(days=1), value)
        return end
