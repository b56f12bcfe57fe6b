"""SQLite-backed session ledger."""

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Union

from kairos.core.clock import Clock
from kairos.core.errors import AmbiguousIdentifier, NotFound, StorageFailure
from kairos.models.session import SHORT_ID_LENGTH, Session

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS work_sessions (
    id TEXT PRIMARY KEY,
    date TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT,
    break_minutes INTEGER DEFAULT 0,
    note TEXT
);

CREATE INDEX IF NOT EXISTS idx_sessions_date ON work_sessions(date);
CREATE INDEX IF NOT EXISTS idx_sessions_start ON work_sessions(start_time);
"""

# Absolute instants are stored as naive UTC, second precision. The fixed
# width keeps string comparison equal to chronological comparison.
STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_COLUMNS = "id, date, start_time, end_time, break_minutes, note"


class SessionLedger:
    """Persisted, time-ordered collection of work sessions.

    All access goes through one re-entrant lock so the foreground command and
    the background archiver never interleave on the connection.
    """

    def __init__(self, db_path: Union[str, Path], clock: Clock):
        self.db_path = db_path
        self.clock = clock
        self._lock = threading.RLock()
        self._conn = self._connect()

    def _connect(self) -> sqlite3.Connection:
        try:
            if str(self.db_path) != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.executescript(SCHEMA)
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StorageFailure(f"failed to open database {self.db_path}: {e}") from e
        return conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def locked(self) -> Iterator["SessionLedger"]:
        """Hold the store lock across several ledger calls."""
        with self._lock:
            yield self

    @contextmanager
    def _cursor(self, write: bool = False) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            try:
                cursor = self._conn.cursor()
                yield cursor
                if write:
                    self._conn.commit()
            except sqlite3.Error as e:
                if write:
                    self._conn.rollback()
                raise StorageFailure(str(e)) from e

    # Timezone boundary

    def _encode(self, value: datetime) -> str:
        return self.clock.localize(value).astimezone(timezone.utc).strftime(
            STORAGE_FORMAT
        )

    def _decode(self, value: str) -> datetime:
        instant = datetime.strptime(value, STORAGE_FORMAT).replace(tzinfo=timezone.utc)
        return instant.astimezone(self.clock.zone)

    def _local_date(self, value: datetime) -> str:
        return self.clock.localize(value).date().isoformat()

    def _row_to_session(self, row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"],
            start_time=self._decode(row["start_time"]),
            end_time=self._decode(row["end_time"]) if row["end_time"] else None,
            break_minutes=row["break_minutes"] or 0,
            note=row["note"],
        )

    def _params(self, session: Session) -> tuple:
        return (
            self._local_date(session.start_time),
            self._encode(session.start_time),
            self._encode(session.end_time) if session.end_time else None,
            session.break_minutes,
            session.note,
        )

    # Mutations

    def insert(self, session: Session) -> Session:
        """Store a new session, assigning an id when it has none."""
        if not session.id:
            session = session.model_copy(update={"id": str(uuid.uuid4())})
        with self._cursor(write=True) as cursor:
            cursor.execute(
                f"INSERT INTO work_sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (session.id,) + self._params(session),
            )
        logger.debug("Inserted session %s", session.id)
        return self.get_by_id(session.id)

    def update(self, session: Session) -> Session:
        """Replace start, end, break and note of an existing session."""
        if not session.id:
            raise NotFound("")
        with self._cursor(write=True) as cursor:
            cursor.execute(
                """UPDATE work_sessions
                   SET date = ?, start_time = ?, end_time = ?, break_minutes = ?, note = ?
                   WHERE id = ?""",
                self._params(session) + (session.id,),
            )
            if cursor.rowcount == 0:
                raise NotFound(session.id)
        logger.debug("Updated session %s", session.id)
        return self.get_by_id(session.id)

    def delete_by_id(self, identifier: str) -> Session:
        """Delete one session and return it."""
        with self._lock:
            session = self.get_by_id(identifier)
            with self._cursor(write=True) as cursor:
                cursor.execute("DELETE FROM work_sessions WHERE id = ?", (session.id,))
        logger.debug("Deleted session %s", session.id)
        return session

    def delete_in_range(
        self, start: datetime, end: datetime, closed_only: bool = False
    ) -> int:
        """Delete sessions starting within [start, end]; return the row count."""
        query = "DELETE FROM work_sessions WHERE start_time >= ? AND start_time <= ?"
        if closed_only:
            query += " AND end_time IS NOT NULL"
        with self._cursor(write=True) as cursor:
            cursor.execute(query, (self._encode(start), self._encode(end)))
            deleted = cursor.rowcount
        logger.info("Deleted %d session(s) between %s and %s", deleted, start, end)
        return deleted

    # Queries

    def get_by_id(self, identifier: str) -> Session:
        """Resolve a full id, or a short prefix of at least 8 characters."""
        identifier = (identifier or "").strip()
        with self._cursor() as cursor:
            row = cursor.execute(
                f"SELECT {_COLUMNS} FROM work_sessions WHERE id = ?", (identifier,)
            ).fetchone()
            if row is not None:
                return self._row_to_session(row)
            if len(identifier) < SHORT_ID_LENGTH:
                raise NotFound(identifier)
            rows = cursor.execute(
                f"""SELECT {_COLUMNS} FROM work_sessions
                    WHERE substr(id, 1, ?) = ? ORDER BY start_time ASC""",
                (len(identifier), identifier),
            ).fetchall()
        if not rows:
            raise NotFound(identifier)
        if len(rows) > 1:
            raise AmbiguousIdentifier(identifier, [r["id"] for r in rows])
        return self._row_to_session(rows[0])

    def get_active(self) -> Optional[Session]:
        with self._cursor() as cursor:
            row = cursor.execute(
                f"""SELECT {_COLUMNS} FROM work_sessions
                    WHERE end_time IS NULL ORDER BY start_time DESC LIMIT 1"""
            ).fetchone()
        return self._row_to_session(row) if row else None

    def get_in_range(self, start: datetime, end: datetime) -> List[Session]:
        """Sessions whose interval intersects [start, end], oldest first.

        An active session counts as open-ended.
        """
        with self._cursor() as cursor:
            rows = cursor.execute(
                f"""SELECT {_COLUMNS} FROM work_sessions
                    WHERE start_time <= ? AND (end_time IS NULL OR end_time >= ?)
                    ORDER BY start_time ASC""",
                (self._encode(end), self._encode(start)),
            ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def get_started_in_range(self, start: datetime, end: datetime) -> List[Session]:
        """Sessions whose start lies within [start, end], oldest first."""
        with self._cursor() as cursor:
            rows = cursor.execute(
                f"""SELECT {_COLUMNS} FROM work_sessions
                    WHERE start_time >= ? AND start_time <= ?
                    ORDER BY start_time ASC""",
                (self._encode(start), self._encode(end)),
            ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def oldest_session_date(self) -> Optional[date]:
        with self._cursor() as cursor:
            row = cursor.execute("SELECT MIN(start_time) FROM work_sessions").fetchone()
        if row is None or row[0] is None:
            return None
        return self._decode(row[0]).date()

    def count(self) -> int:
        with self._cursor() as cursor:
            return cursor.execute("SELECT COUNT(*) FROM work_sessions").fetchone()[0]
