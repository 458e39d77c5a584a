"""
Application service for answering "which slots can I book on this date?".

The service coordinates fetching the event type, the host's schedule and
existing reservations through a store adapter, and delegates the actual
resolution to the domain-level ``SlotCalculator``. This keeps the CLI thin
and improves testability by allowing the store to be stubbed via a simple
protocol.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

import pendulum
from pendulum import Date, DateTime

from ..domain.exceptions import InvalidIdentifier, NotFound, SchedulingError
from ..domain.models import CandidateSlot, EventType, ReservedInterval, WeeklySchedule
from ..domain.slot_calculator import SlotCalculator
from ..domain.zones import DateLike, ensure_instant, get_zone, parse_date, to_local

logger = logging.getLogger(__name__)

MAX_BOOKING_DAYS = 60

EVENT_NOT_FOUND_MESSAGE = "Event type not found"
AVAILABILITY_FAILED_MESSAGE = "Failed to calculate available slots"


class SchedulingStoreProtocol(Protocol):
    """Protocol describing the store behaviour needed to resolve availability."""

    async def get_event_type(self, event_type_id: str) -> EventType:
        """Return the event type or raise ``NotFound``."""

    async def get_weekly_schedule(self, host_id: str) -> Tuple[WeeklySchedule, str]:
        """Return the host's normalized schedule and IANA zone, or raise ``NotFound``."""

    async def get_reserved_intervals(
        self,
        event_type_id: str,
        window_start: DateTime,
        window_end: DateTime,
    ) -> List[ReservedInterval]:
        """Return reservations of the event type overlapping the UTC window."""


@dataclass
class SlotCalculationResult:
    """Outcome of a slot query, shaped for web handlers and the CLI."""
    success: bool
    slots: List[CandidateSlot] = field(default_factory=list)
    error: Optional[str] = None


class AvailabilityService:
    """
    Orchestrates data retrieval and slot resolution for one event type.

    Errors never escape as exceptions: a missing event type is reported as
    such, everything else as a generic failure, with details logged.
    """

    def __init__(
        self,
        store: SchedulingStoreProtocol,
        slot_calculator: SlotCalculator,
        max_booking_days: int = MAX_BOOKING_DAYS,
    ) -> None:
        self._store = store
        self._slot_calculator = slot_calculator
        self._max_booking_days = max_booking_days

    async def get_available_slots(
        self,
        *,
        event_type_id: str,
        selected_date: DateLike,
        invitee_timezone: str,
        now: Optional[DateTime] = None,
    ) -> SlotCalculationResult:
        """
        Get available slots for an event type on the invitee's calendar date.

        Args:
            event_type_id: The event type ID
            selected_date: Date (YYYY-MM-DD) in the invitee's zone
            invitee_timezone: Invitee's IANA zone
            now: Reference instant, defaults to the current time

        Returns:
            SlotCalculationResult with available slots or an error message
        """
        try:
            slots = await self._resolve(
                event_type_id=event_type_id,
                selected_date=selected_date,
                invitee_timezone=invitee_timezone,
                now=now,
            )
        except NotFound as exc:
            logger.info("Slot lookup for %r failed: %s", event_type_id, exc)
            return SlotCalculationResult(success=False, error=EVENT_NOT_FOUND_MESSAGE)
        except SchedulingError:
            logger.exception("Error calculating available slots for event type %r", event_type_id)
            return SlotCalculationResult(success=False, error=AVAILABILITY_FAILED_MESSAGE)

        return SlotCalculationResult(success=True, slots=slots)

    async def _resolve(
        self,
        *,
        event_type_id: str,
        selected_date: DateLike,
        invitee_timezone: str,
        now: Optional[DateTime],
    ) -> List[CandidateSlot]:
        if not event_type_id:
            raise InvalidIdentifier("Event type is required")

        calendar_day = parse_date(selected_date)
        get_zone(invitee_timezone)
        cutoff = ensure_instant(now) if now is not None else pendulum.now(pendulum.UTC)

        if not self.is_bookable_date(calendar_day, invitee_timezone, cutoff):
            logger.debug("Date %s is outside the booking window", calendar_day)
            return []

        event_type = await self._store.get_event_type(event_type_id)
        if event_type.deleted:
            raise NotFound(f"Event type {event_type_id} has been deleted")

        schedule, host_timezone = await self._store.get_weekly_schedule(event_type.host_id)
        if schedule.is_empty:
            return []

        window = self._slot_calculator.lookup_window(calendar_day, host_timezone, invitee_timezone)
        reserved = await self._store.get_reserved_intervals(event_type.id, window.start, window.end)

        return self._slot_calculator.find_available_slots(
            selected_date=calendar_day,
            duration_minutes=event_type.duration_minutes,
            host_timezone=host_timezone,
            invitee_timezone=invitee_timezone,
            schedule=schedule,
            reserved=reserved,
            now=cutoff,
        )

    def is_bookable_date(self, calendar_day: Date, invitee_timezone: str, now: DateTime) -> bool:
        """A date is bookable from the invitee's today up to ``max_booking_days`` ahead."""
        today, _ = to_local(now, invitee_timezone)
        return today <= calendar_day <= today.add(days=self._max_booking_days)
