from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from guide_bookings.errors import InvalidWindow


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Half-open time-of-day interval [start, end) on a single calendar date."""

    start: time
    end: time

    def __post_init__(self) -> None:
        # Times read back from the database carry the default timezone;
        # windows compare as plain time-of-day.
        object.__setattr__(self, "start", self.start.replace(tzinfo=None))
        object.__setattr__(self, "end", self.end.replace(tzinfo=None))
        if self.end <= self.start:
            raise InvalidWindow(
                f"end_time ({self.end:%H:%M}) must be after start_time ({self.start:%H:%M})"
            )

    @property
    def duration(self) -> timedelta:
        # Anchor both ends on the same day; no overnight spans.
        return datetime.combine(date.min, self.end) - datetime.combine(
            date.min, self.start
        )

    def duration_hours(self) -> float:
        return self.duration.total_seconds() / 3600

    def overlaps(self, other: TimeWindow) -> bool:
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"
