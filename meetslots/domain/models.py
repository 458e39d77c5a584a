"""
Domain models for weekly availability, instants and bookable slots.

All instants are ``pendulum.DateTime`` values in UTC. Local wall-clock values
only ever appear as ``datetime.time`` inside a ``TimeBlock`` (host side) or as
pre-rendered display strings on a ``CandidateSlot`` (invitee side).
"""

from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pendulum import DateTime

from .exceptions import InvalidBlock, InvalidTime


class Weekday(str, Enum):
    """Closed set of weekdays, valued by their lowercase schedule key."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_index(cls, index: int) -> "Weekday":
        """Map a ``date.weekday()`` index (0=Monday, 6=Sunday) to a Weekday."""
        return WEEKDAYS[index]

    @property
    def position(self) -> int:
        return WEEKDAYS.index(self)

    @property
    def label(self) -> str:
        return self.value.capitalize()


WEEKDAYS: List[Weekday] = list(Weekday)


def intervals_overlap(start_a, end_a, start_b, end_b) -> bool:
    """
    Half-open overlap test shared by slot filtering and booking admission.

    Intervals that merely touch (one ends exactly when the other starts)
    do not overlap.
    """
    return start_a < end_b and end_a > start_b


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable range between two UTC instants.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidTime(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return intervals_overlap(self.start, self.end, other.start, other.end)

    def __str__(self) -> str:
        return f"{self.start.to_iso8601_string()} - {self.end.to_iso8601_string()}"


@dataclass(frozen=True)
class ReservedInterval(TimeRange):
    """An interval already taken by an existing booking."""
    reservation_id: Optional[str] = None
    event_type_id: Optional[str] = None


@dataclass(frozen=True)
class TimeBlock:
    """
    A host-local availability window on one weekday, e.g. 09:00-17:00.

    Invariant: end is strictly after start, so a block never crosses midnight.
    """
    start: time
    end: time

    def __post_init__(self):
        if self.end <= self.start:
            raise InvalidBlock(
                f"Block end {self.end:%H:%M} must be after block start {self.start:%H:%M}"
            )

    def duration_minutes(self) -> int:
        return (self.end.hour * 60 + self.end.minute) - (self.start.hour * 60 + self.start.minute)

    def overlaps(self, other: "TimeBlock") -> bool:
        return intervals_overlap(self.start, self.end, other.start, other.end)

    def to_dict(self) -> Dict[str, str]:
        return {"start": f"{self.start:%H:%M}", "end": f"{self.end:%H:%M}"}

    def __str__(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


@dataclass
class WeeklySchedule:
    """
    Host availability per weekday, in the host's local time.

    Days missing from ``days`` (or mapped to an empty tuple) are unavailable.
    """
    days: Dict[Weekday, Tuple[TimeBlock, ...]] = field(default_factory=dict)

    def blocks_for(self, weekday: Weekday) -> Tuple[TimeBlock, ...]:
        return self.days.get(weekday, ())

    def is_available(self, weekday: Weekday) -> bool:
        return bool(self.blocks_for(weekday))

    @property
    def is_empty(self) -> bool:
        return not any(self.days.values())


@dataclass(frozen=True)
class CandidateSlot:
    """
    A bookable interval of fixed duration.

    ``start``/``end`` are UTC instants; the display strings are rendered in
    the invitee's zone.
    """
    start: DateTime
    end: DateTime
    start_display: str
    end_display: str

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: TimeRange) -> bool:
        return intervals_overlap(self.start, self.end, other.start, other.end)

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: 9:00 AM – 9:30 AM (30 min)
        """
        return f"{self.start_display} – {self.end_display} ({self.duration_minutes()} min)"

    def to_dict(self) -> Dict[str, str]:
        return {
            "start_time_utc": self.start.to_iso8601_string(),
            "end_time_utc": self.end.to_iso8601_string(),
            "start_time_display": self.start_display,
            "end_time_display": self.end_display,
        }


@dataclass(frozen=True)
class EventType:
    """A bookable meeting type owned by a host."""
    id: str
    host_id: str
    duration_minutes: int
    name: str = ""
    deleted: bool = False


@dataclass
class HostRecord:
    """
    A host as kept by a store.

    ``availability`` is the raw stored record, in either the legacy list shape
    or the current ``{enabled, blocks}`` shape; stores normalize it on read.
    """
    id: str
    timezone: str = "UTC"
    availability: Optional[Any] = None
    name: str = ""


@dataclass(frozen=True)
class InviteeInfo:
    name: str
    email: str
    timezone: str
    notes: str = ""


@dataclass(frozen=True)
class Reservation:
    """A persisted booking."""
    id: str
    event_type_id: str
    interval: TimeRange
    invitee: InviteeInfo
    created_at: Optional[DateTime] = None

    def as_reserved_interval(self) -> ReservedInterval:
        return ReservedInterval(
            start=self.interval.start,
            end=self.interval.end,
            reservation_id=self.id,
            event_type_id=self.event_type_id,
        )
