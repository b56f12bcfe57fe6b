"""Monthly archival of closed sessions to Markdown.

Each complete month is written to ``<history>/<YYYY>-<MM>.md`` and its
closed sessions are then removed from the ledger. The file is always fully
written before anything is deleted, so an interrupted run leaves the ledger
as the source of truth.
"""

import calendar
import logging
import os
import tempfile
import threading
from collections import defaultdict
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from kairos.core.clock import Clock
from kairos.core.errors import (
    ArchiveAborted,
    EmptyMonth,
    KairosError,
    NotFound,
    StorageFailure,
)
from kairos.core.ledger import SessionLedger
from kairos.models.archive import MonthSummary, SessionRecord
from kairos.models.session import Session

logger = logging.getLogger(__name__)

NOTE_WIDTH = 30


def month_label(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def next_month(year: int, month: int) -> Tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def truncate_note(note: Optional[str], width: int = NOTE_WIDTH) -> str:
    note = (note or "").replace("|", "/").replace("\n", " ")
    if len(note) > width:
        return note[: width - 3] + "..."
    return note


def build_summary(
    month_start: date, sessions: Sequence[Session], weekly_goal: float
) -> MonthSummary:
    """Fold a month's sessions into an archive summary; open sessions are skipped."""
    summary = MonthSummary(month=month_start, weekly_goal=weekly_goal)
    days = set()
    week_breakdown = defaultdict(float)

    for session in sessions:
        if session.is_active:
            continue
        hours = session.duration_hours
        summary.total_hours += hours
        days.add(session.date)
        week_breakdown[session.date.isocalendar()[1]] += hours
        summary.sessions.append(
            SessionRecord(
                date=session.date.isoformat(),
                start_time=session.start_time.strftime("%H:%M"),
                end_time=session.end_time.strftime("%H:%M"),
                hours=hours,
                break_minutes=session.break_minutes,
                note=session.note or "",
            )
        )

    summary.days_worked = len(days)
    summary.week_breakdown = dict(week_breakdown)
    return summary


def render_markdown(summary: MonthSummary, archived_at: datetime) -> str:
    lines = [
        f"# {calendar.month_name[summary.month.month]} {summary.month.year}",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Total Hours | {summary.total_hours:.2f} |",
        f"| Days Worked | {summary.days_worked} |",
        f"| Daily Average | {summary.daily_average:.2f} |",
        f"| Weekly Goal | {summary.weekly_goal:.2f} |",
        "",
        "## Weekly Breakdown",
        "",
        "| Week | Hours |",
        "|------|-------|",
    ]
    for week in sorted(summary.week_breakdown):
        lines.append(f"| W{week} | {summary.week_breakdown[week]:.2f} |")

    lines += [
        "",
        "## Sessions",
        "",
        "| Date | Start | End | Hours | Break | Note |",
        "|------|-------|-----|-------|-------|------|",
    ]
    for record in summary.sessions:
        lines.append(
            f"| {record.date} | {record.start_time} | {record.end_time} "
            f"| {record.hours:.2f} | {record.break_minutes}m "
            f"| {truncate_note(record.note)} |"
        )

    lines += [
        "",
        "---",
        f"*Archived: {archived_at.strftime('%Y-%m-%d %H:%M')}*",
        "",
    ]
    return "\n".join(lines)


class Archiver:
    """Exports complete months to Markdown and compacts the ledger."""

    def __init__(
        self,
        ledger: SessionLedger,
        history_path: Path,
        clock: Clock,
        weekly_goal: float = 38.5,
    ):
        self.ledger = ledger
        self.history_path = Path(history_path)
        self.clock = clock
        self.weekly_goal = weekly_goal

    def archive_path(self, year: int, month: int) -> Path:
        return self.history_path / f"{month_label(year, month)}.md"

    def is_archived(self, year: int, month: int) -> bool:
        return self.archive_path(year, month).exists()

    def _month_bounds(self, year: int, month: int) -> Tuple[datetime, datetime]:
        last_day = calendar.monthrange(year, month)[1]
        return (
            self.clock.start_of_day(date(year, month, 1)),
            self.clock.end_of_day(date(year, month, last_day)),
        )

    def archive_month(self, year: int, month: int, delete_after: bool = False) -> Path:
        """Write the month's record, then optionally delete its closed sessions.

        Raises EmptyMonth when the month has no closed sessions; nothing is
        written or deleted in that case.
        """
        start, end = self._month_bounds(year, month)
        with self.ledger.locked():
            sessions = [
                s
                for s in self.ledger.get_started_in_range(start, end)
                if not s.is_active
            ]
            if not sessions:
                raise EmptyMonth(year, month)

            summary = build_summary(start.date(), sessions, self.weekly_goal)
            path = self.archive_path(year, month)
            self._write_atomic(path, render_markdown(summary, self.clock.now()))
            logger.info(
                "Archived %d session(s) for %s to %s",
                len(sessions),
                summary.label,
                path,
            )

            if delete_after:
                self.ledger.delete_in_range(start, end, closed_only=True)
        return path

    def _write_atomic(self, path: Path, content: str) -> None:
        try:
            self.history_path.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.stem}-", suffix=".tmp", dir=self.history_path
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageFailure(f"failed to write archive {path}: {e}") from e

    def auto_archive_past_months(
        self,
        now: Optional[datetime] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[str]:
        """Archive (with deletion) every complete month before the current one.

        Months that already have a record are skipped, as are months without
        closed sessions and the month of a still-active session (it is picked
        up by a later run once the session is closed). Any other failure raises ArchiveAborted carrying the
        months archived before it.
        """
        now = self.clock.localize(now) if now is not None else self.clock.now()
        current = (now.year, now.month)

        oldest = self.ledger.oldest_session_date()
        if oldest is None:
            return []

        # A month is only complete once its open session is closed.
        active = self.ledger.get_active()
        open_month = (active.date.year, active.date.month) if active else None

        archived: List[str] = []
        year, month = oldest.year, oldest.month
        while (year, month) < current:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Auto-archive cancelled after %d month(s)", len(archived))
                break
            if self.is_archived(year, month):
                logger.debug("Skipping %s, already archived", month_label(year, month))
            elif (year, month) == open_month:
                logger.info(
                    "Skipping %s, session %s is still active",
                    month_label(year, month),
                    active.short_id,
                )
            else:
                try:
                    self.archive_month(year, month, delete_after=True)
                    archived.append(month_label(year, month))
                except EmptyMonth:
                    logger.debug("Skipping %s, no sessions", month_label(year, month))
                except KairosError as e:
                    raise ArchiveAborted(archived, e) from e
            year, month = next_month(year, month)
        return archived

    def list_archives(self) -> List[str]:
        """File names of archived months, oldest first."""
        if not self.history_path.exists():
            return []
        return sorted(
            p.name
            for p in self.history_path.iterdir()
            if p.is_file() and p.suffix == ".md" and not p.name.startswith(".")
        )

    def read_archive(self, year: int, month: int) -> str:
        path = self.archive_path(year, month)
        if not path.exists():
            raise NotFound(f"archive {path.name}")
        return path.read_text(encoding="utf-8")

    def history_context(self, months_back: int = 3) -> str:
        """Titles and summary rows of the last `months_back` archives."""
        archives = self.list_archives()
        if not archives:
            return ""

        out = ["HISTORICAL DATA:"]
        for name in archives[-months_back:]:
            content = (self.history_path / name).read_text(encoding="utf-8")
            in_summary = False
            for line in content.splitlines():
                if line.startswith("# "):
                    out.append(f"\n{line[2:]}:")
                elif line.startswith("## Summary"):
                    in_summary = True
                elif line.startswith("## "):
                    in_summary = False
                elif (
                    in_summary
                    and line.startswith("| ")
                    and not line.startswith("| Metric")
                ):
                    out.append(f"  {line}")
        return "\n".join(out) + "\n"


class AutoArchiveTask:
    """Best-effort background run of `Archiver.auto_archive_past_months`.

    Completion and failure are delivered through `future`; `wait` logs
    problems and never raises into the caller.
    """

    def __init__(self, archiver: Archiver):
        self.archiver = archiver
        self.future: Future = Future()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "AutoArchiveTask":
        self.future.set_running_or_notify_cancel()
        self._thread = threading.Thread(
            target=self._run, name="kairos-auto-archive", daemon=True
        )
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            result = self.archiver.auto_archive_past_months(cancel_event=self._cancel)
        except Exception as e:
            self.future.set_exception(e)
        else:
            self.future.set_result(result)

    def cancel(self) -> None:
        self._cancel.set()

    def wait(self, timeout: Optional[float] = None) -> Optional[List[str]]:
        """Return archived months, or None if the task failed or timed out."""
        try:
            archived = self.future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.warning("Auto-archive still running after %.1fs, cancelling", timeout)
            self.cancel()
            return None
        except ArchiveAborted as e:
            logger.warning("Auto-archive stopped: %s", e)
            if e.archived:
                logger.warning("Archived before failure: %s", ", ".join(e.archived))
            return None
        except Exception:
            logger.exception("Auto-archive failed")
            return None

        if archived:
            logger.info(
                "Auto-archived %d month(s) to %s",
                len(archived),
                self.archiver.history_path,
            )
        return archived


def start_auto_archive(archiver: Archiver) -> AutoArchiveTask:
    return AutoArchiveTask(archiver).start()
