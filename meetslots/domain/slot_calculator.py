"""
Core business logic for resolving bookable time slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O). Everything the
calculation needs (schedule, zones, reservations, "now") is passed in, so
one calculator may be shared across threads.
"""

import logging
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidTime
from .models import CandidateSlot, TimeRange, Weekday, WeeklySchedule
from .zones import (
    DISPLAY_FORMAT,
    DateLike,
    day_bounds,
    ensure_instant,
    format_local,
    get_zone,
    parse_date,
    to_instant,
    to_local,
    weekday_of,
)

logger = logging.getLogger(__name__)


class ProjectionAnchor(str, Enum):
    """
    Invitee-local time of day used to project the requested date onto a host weekday.

    MIDNIGHT picks the host weekday in effect when the invitee's day begins.
    MIDDAY picks the host weekday in effect in the middle of the invitee's
    day, which keeps the host weekday equal to the requested date whenever
    the two zones are less than twelve hours apart.
    """

    MIDNIGHT = "midnight"
    MIDDAY = "midday"

    @property
    def local_time(self) -> str:
        return "00:00" if self is ProjectionAnchor.MIDNIGHT else "12:00"


def validate_duration(duration_minutes: int) -> int:
    """Ensure an event duration is a positive whole number of minutes."""
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise InvalidTime(f"Duration must be a whole number of minutes, got {duration_minutes!r}")
    if duration_minutes <= 0:
        raise InvalidTime(f"Duration must be greater than zero, got {duration_minutes}")
    return duration_minutes


class SlotTiling:
    """
    Consecutive fixed-duration slots inside one availability block.

    Iteration is lazy and restartable: every ``iter()`` walks the block
    again from its start. A slot that would overrun the block end is never
    produced.
    """

    def __init__(
        self,
        block_start: DateTime,
        block_end: DateTime,
        duration_minutes: int,
        display_zone: str,
        display_format: str = DISPLAY_FORMAT,
    ):
        self.block_start = ensure_instant(block_start)
        self.block_end = ensure_instant(block_end)
        self.duration_minutes = validate_duration(duration_minutes)
        self.display_zone = display_zone
        self.display_format = display_format

    def __iter__(self) -> Iterator[CandidateSlot]:
        cursor = self.block_start

        while True:
            slot_end = cursor.add(minutes=self.duration_minutes)

            # Slot must end before or at block end
            if slot_end > self.block_end:
                break

            yield CandidateSlot(
                start=cursor,
                end=slot_end,
                start_display=format_local(cursor, self.display_zone, self.display_format),
                end_display=format_local(slot_end, self.display_zone, self.display_format),
            )

            cursor = slot_end

    def __len__(self) -> int:
        total_minutes = int((self.block_end - self.block_start).total_seconds() // 60)
        return max(total_minutes, 0) // self.duration_minutes


def tile_block(
    block_start: DateTime,
    block_end: DateTime,
    duration_minutes: int,
    display_zone: str,
    display_format: str = DISPLAY_FORMAT,
) -> SlotTiling:
    """Expand one availability block into contiguous candidate slots."""
    return SlotTiling(block_start, block_end, duration_minutes, display_zone, display_format)


def exclude_conflicts(
    candidates: Iterable[CandidateSlot],
    reserved: Sequence[TimeRange],
) -> List[CandidateSlot]:
    """
    Drop every candidate that overlaps an existing reservation.

    Candidates touching a reservation at either edge are kept.
    """
    return [
        candidate for candidate in candidates
        if not any(candidate.overlaps(interval) for interval in reserved)
    ]


def drop_elapsed(candidates: Iterable[CandidateSlot], now: DateTime) -> List[CandidateSlot]:
    """Keep only candidates starting strictly after ``now``."""
    cutoff = ensure_instant(now)
    return [candidate for candidate in candidates if candidate.start > cutoff]


class SlotCalculator:
    """
    Resolves which slots an invitee can book on one of their calendar dates.

    Algorithm:
    1. Take the anchor instant of the requested date in the invitee's zone
    2. Project it onto the host's weekday and calendar date
    3. Look up the host's blocks for that weekday
    4. Convert each block to UTC instants on the host date and tile it
    5. Remove slots overlapping existing reservations
    6. Remove slots that have already started
    7. Return the rest sorted by start
    """

    def __init__(
        self,
        anchor: ProjectionAnchor = ProjectionAnchor.MIDDAY,
        display_format: str = DISPLAY_FORMAT,
    ):
        self.anchor = ProjectionAnchor(anchor)
        self.display_format = display_format

    def find_available_slots(
        self,
        selected_date: DateLike,
        duration_minutes: int,
        host_timezone: str,
        invitee_timezone: str,
        schedule: WeeklySchedule,
        reserved: Sequence[TimeRange] = (),
        now: Optional[DateTime] = None,
    ) -> List[CandidateSlot]:
        """
        Find every bookable slot for the invitee's ``selected_date``.

        Args:
            selected_date: Calendar date (YYYY-MM-DD) in the invitee's zone
            duration_minutes: Event duration, positive
            host_timezone: Host's IANA zone; schedule blocks are local to it
            invitee_timezone: Invitee's IANA zone, used for date and display
            schedule: Normalized weekly schedule of the host
            reserved: Existing reservations (UTC instants)
            now: Reference instant for dropping elapsed slots, defaults to now

        Returns:
            Slots sorted ascending by start; empty when the day has no availability

        Raises:
            InvalidZone: If either zone is not a recognized IANA name
            InvalidTime: If the date or the duration is invalid
        """
        calendar_day = parse_date(selected_date)
        validate_duration(duration_minutes)
        get_zone(host_timezone)
        get_zone(invitee_timezone)
        cutoff = ensure_instant(now) if now is not None else pendulum.now(pendulum.UTC)

        host_date, host_weekday = self.host_day_for(calendar_day, host_timezone, invitee_timezone)

        blocks = schedule.blocks_for(host_weekday)
        if not blocks:
            logger.debug("No availability on %s for host date %s", host_weekday.value, host_date)
            return []

        candidates: List[CandidateSlot] = []
        for block in blocks:
            block_start = to_instant(host_date, block.start, host_timezone)
            block_end = to_instant(host_date, block.end, host_timezone)
            candidates.extend(
                tile_block(block_start, block_end, duration_minutes, invitee_timezone, self.display_format)
            )

        available = exclude_conflicts(candidates, reserved)
        upcoming = drop_elapsed(available, cutoff)

        logger.debug(
            "Resolved %d of %d candidate slots for %s (host %s %s)",
            len(upcoming), len(candidates), calendar_day, host_weekday.value, host_date,
        )

        return sorted(upcoming, key=lambda slot: (slot.start, slot.end))

    def host_day_for(
        self,
        selected_date: DateLike,
        host_timezone: str,
        invitee_timezone: str,
    ) -> Tuple[Date, Weekday]:
        """Return the host calendar date and weekday that the invitee's date maps to."""
        reference = to_instant(selected_date, self.anchor.local_time, invitee_timezone)
        host_date, _ = to_local(reference, host_timezone)
        return host_date, weekday_of(reference, host_timezone)

    def lookup_window(
        self,
        selected_date: DateLike,
        host_timezone: str,
        invitee_timezone: str,
    ) -> TimeRange:
        """
        UTC window to fetch reservations for before resolving ``selected_date``.

        Covers the invitee's whole local day and the projected host day, so
        no reservation that could touch a candidate slot is left out.
        """
        invitee_day = day_bounds(selected_date, invitee_timezone)
        host_date, _ = self.host_day_for(selected_date, host_timezone, invitee_timezone)
        host_day = day_bounds(host_date, host_timezone)

        return TimeRange(
            start=min(invitee_day.start, host_day.start),
            end=max(invitee_day.end, host_day.end),
        )
