"""
Weekly time slots.

A slot is a (day, start, end) triple describing a recurring weekly
occurrence. Two slots overlap only when they share a day and
    start < other_end AND other_start < end
so slots that merely touch at a boundary do not overlap.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from enum import Enum

from campus.core.exceptions import InvalidArgsError


class DayOfWeek(str, Enum):
    monday = "Monday"
    tuesday = "Tuesday"
    wednesday = "Wednesday"
    thursday = "Thursday"
    friday = "Friday"
    saturday = "Saturday"
    sunday = "Sunday"

    @property
    def ordinal(self) -> int:
        return list(DayOfWeek).index(self)

    @classmethod
    def parse(cls, value: str | DayOfWeek) -> DayOfWeek:
        if isinstance(value, DayOfWeek):
            return value
        normalized = str(value).strip().lower()
        for day in cls:
            if day.name == normalized or day.value.lower() == normalized:
                return day
        raise InvalidArgsError(f"Invalid day value: {value!r}")


@dataclass(frozen=True)
class TimeSlot:
    day: DayOfWeek
    start: time
    end: time

    def __post_init__(self) -> None:
        if not isinstance(self.day, DayOfWeek):
            object.__setattr__(self, "day", DayOfWeek.parse(self.day))
        if self.start is None or self.end is None:
            raise InvalidArgsError("Time slot requires both start and end time")
        if self.end <= self.start:
            raise InvalidArgsError(
                "End time must be after start time",
                details={"start_time": self.start.isoformat(), "end_time": self.end.isoformat()},
            )

    def overlaps(self, other: TimeSlot) -> bool:
        return self.day == other.day and self.start < other.end and other.start < self.end

    def merge(self, *, day: DayOfWeek | None = None, start: time | None = None, end: time | None = None) -> TimeSlot:
        """Return a new slot with the supplied fields replaced; omitted fields are kept."""
        return TimeSlot(
            day if day is not None else self.day,
            start if start is not None else self.start,
            end if end is not None else self.end,
        )

    def sort_key(self) -> tuple[int, time, time]:
        return (self.day.ordinal, self.start, self.end)

    def __str__(self) -> str:
        return f"{self.day.value} {self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"
