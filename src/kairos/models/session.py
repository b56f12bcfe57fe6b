"""Session model for tracked work intervals."""

from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

SHORT_ID_LENGTH = 8


class Session(BaseModel):
    """Represents one contiguous work session."""

    id: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    break_minutes: int = Field(default=0, ge=0)
    note: Optional[str] = None

    @property
    def is_active(self) -> bool:
        """Check if session is still open."""
        return self.end_time is None

    @property
    def date(self) -> date:
        """Calendar day the session is attributed to."""
        return self.start_time.date()

    @property
    def short_id(self) -> str:
        return (self.id or "")[:SHORT_ID_LENGTH]

    @property
    def duration_hours(self) -> Optional[float]:
        """Get worked hours minus break, or None while active."""
        if self.end_time is None:
            return None
        # Same-zone aware subtraction is wall-clock; compare instants in UTC.
        elapsed = (
            self.end_time.astimezone(timezone.utc)
            - self.start_time.astimezone(timezone.utc)
        ).total_seconds() / 3600.0
        return elapsed - self.break_minutes / 60.0
