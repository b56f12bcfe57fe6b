"""Exception hierarchy shared by the ledger, lifecycle and archival code."""

from typing import List, Optional, Sequence


class KairosError(Exception):
    """Base class for all Kairos failures."""


class NotFound(KairosError):
    """No session matches the given identifier."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"session not found: {identifier}")


class AmbiguousIdentifier(KairosError):
    """A short identifier matches more than one session."""

    def __init__(self, identifier: str, candidates: Sequence[str]):
        self.identifier = identifier
        self.candidates = list(candidates)
        super().__init__(
            f"identifier {identifier!r} matches {len(self.candidates)} sessions: "
            + ", ".join(self.candidates)
        )


class AlreadyActive(KairosError):
    """Clock-in attempted while another session is still open."""

    def __init__(self, session):
        self.session = session
        started = session.start_time.strftime("%Y-%m-%d %H:%M")
        super().__init__(
            f"session {session.short_id} is still active (started {started})"
        )


class SessionNotActive(KairosError):
    """Clock-out attempted on a session that is already closed."""

    def __init__(self, session):
        self.session = session
        super().__init__(f"session {session.short_id} is not active")


class InvalidTimeFormat(KairosError):
    def __init__(self, value: str):
        self.value = value
        super().__init__(f"invalid time format: {value} (use HH:MM)")


class EmptyMonth(KairosError):
    """Archival requested for a month without closed sessions."""

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"no sessions found for {year}-{month:02d}")


class StorageFailure(KairosError):
    """I/O failure against the ledger database or the archive directory."""


class ArchiveAborted(KairosError):
    """The auto-archive walk stopped early; `archived` holds what was done."""

    def __init__(self, archived: List[str], cause: Optional[BaseException] = None):
        self.archived = list(archived)
        self.cause = cause
        super().__init__(
            f"auto-archive stopped after {len(self.archived)} month(s): {cause}"
        )


class ConfigError(KairosError):
    """Invalid configuration file or value."""
