"""Session export (CSV, JSON) and ad-hoc range reports."""

import csv
import json
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Sequence, TextIO

from pydantic import BaseModel

from kairos.core.ledger import SessionLedger
from kairos.core.tracker import closed_hours
from kairos.models.session import Session

CSV_HEADER = ["Date", "Start", "End", "Break (min)", "Hours", "Note"]


class RangeReport(BaseModel):
    start: date
    end: date
    total_hours: float
    session_count: int
    by_date: Dict[date, float]


def _hours(session: Session) -> float:
    return session.duration_hours if not session.is_active else 0.0


def sessions_to_csv(sessions: Iterable[Session], stream: TextIO) -> None:
    writer = csv.writer(stream)
    writer.writerow(CSV_HEADER)
    for s in sessions:
        writer.writerow(
            [
                s.date.isoformat(),
                s.start_time.strftime("%H:%M"),
                s.end_time.strftime("%H:%M") if s.end_time else "",
                s.break_minutes,
                f"{_hours(s):.2f}",
                s.note or "",
            ]
        )


def sessions_to_json(sessions: Sequence[Session], export_date: date) -> str:
    exported: List[dict] = []
    for s in sessions:
        item = {
            "id": s.id,
            "date": s.date.isoformat(),
            "start_time": s.start_time.strftime("%H:%M"),
            "break_minutes": s.break_minutes,
            "hours_worked": round(_hours(s), 4),
        }
        if s.end_time:
            item["end_time"] = s.end_time.strftime("%H:%M")
        if s.note:
            item["note"] = s.note
        exported.append(item)

    return json.dumps(
        {
            "export_date": export_date.isoformat(),
            "total_sessions": len(exported),
            "sessions": exported,
        },
        indent=2,
    )


def range_report(ledger: SessionLedger, start: datetime, end: datetime) -> RangeReport:
    """Hours of sessions starting within [start, end], grouped by day."""
    sessions = ledger.get_started_in_range(start, end)
    by_date = defaultdict(float)
    for s in sessions:
        if not s.is_active:
            by_date[s.date] += s.duration_hours
    return RangeReport(
        start=start.date(),
        end=end.date(),
        total_hours=closed_hours(sessions),
        session_count=len(sessions),
        by_date=dict(sorted(by_date.items())),
    )
