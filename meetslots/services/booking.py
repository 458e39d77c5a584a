"""
Application service for creating and listing bookings.

Creating a booking runs the admission check against a snapshot of
reservations first, then asks the store to commit. The store repeats the
overlap test atomically with the insert, which closes the gap between the
two steps when several invitees race for the same slot.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Protocol, Union

import pendulum
from pendulum import DateTime
from pydantic import BaseModel, ValidationError, field_validator

from ..domain.admission import is_free
from ..domain.exceptions import NotFound, SchedulingError, SlotUnavailable
from ..domain.models import EventType, InviteeInfo, Reservation, ReservedInterval, TimeRange
from ..domain.zones import ensure_instant, is_valid_zone

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SLOT_UNAVAILABLE_MESSAGE = "This time slot is no longer available. Please select another time."
EVENT_GONE_MESSAGE = "This event type no longer exists."
EVENT_DELETED_MESSAGE = "This event type is no longer available for booking."
PAST_SLOT_MESSAGE = "Cannot book a time slot in the past."
GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class BookingStoreProtocol(Protocol):
    """Protocol describing the store behaviour needed to create bookings."""

    async def get_event_type(self, event_type_id: str) -> EventType:
        """Return the event type or raise ``NotFound``."""

    async def get_reserved_intervals(
        self,
        event_type_id: str,
        window_start: DateTime,
        window_end: DateTime,
    ) -> List[ReservedInterval]:
        """Return reservations of the event type overlapping the UTC window."""

    async def create_reservation(
        self,
        event_type_id: str,
        interval: TimeRange,
        invitee: InviteeInfo,
    ) -> str:
        """Atomically re-check overlap and insert; raise ``SlotUnavailable`` on conflict."""

    async def list_reservations(self, host_id: str, since: DateTime) -> List[Reservation]:
        """Return reservations of the host's active event types starting at or after ``since``."""


class BookingRequest(BaseModel):
    """Booking submission as received from a form or the CLI."""
    event_type_id: str
    start_time: str
    invitee_name: str
    invitee_email: str
    invitee_timezone: str
    invitee_notes: str = ""

    @field_validator("event_type_id")
    @classmethod
    def validate_event_type_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Event type is required")
        return value

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        """Ensure the start time is an ISO 8601 instant with an explicit offset."""
        value = value.strip()
        if not value:
            raise ValueError("Start time is required")
        ensure_instant(value, require_offset=True)
        return value

    @field_validator("invitee_name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        if len(value) > 100:
            raise ValueError("Name must be 100 characters or less")
        return value

    @field_validator("invitee_email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("Email is required")
        if len(value) > 255:
            raise ValueError("Email must be 255 characters or less")
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email address")
        return value

    @field_validator("invitee_notes")
    @classmethod
    def validate_notes(cls, value: str) -> str:
        value = value.strip()
        if len(value) > 500:
            raise ValueError("Notes must be 500 characters or less")
        return value

    @field_validator("invitee_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_zone(value):
            raise ValueError("Invalid timezone. Please select a valid timezone.")
        return value

    def start_instant(self) -> DateTime:
        return ensure_instant(self.start_time)

    def invitee(self) -> InviteeInfo:
        return InviteeInfo(
            name=self.invitee_name,
            email=self.invitee_email,
            timezone=self.invitee_timezone,
            notes=self.invitee_notes,
        )


@dataclass
class BookingResult:
    success: bool
    booking_id: Optional[str] = None
    error: Optional[str] = None


def _first_validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid booking data"
    first = errors[0]
    original = first.get("ctx", {}).get("error")
    return str(original) if original else first.get("msg", "Invalid booking data")


class BookingService:
    """Creates bookings and lists a host's upcoming ones."""

    def __init__(self, store: BookingStoreProtocol) -> None:
        self._store = store

    async def create_booking(
        self,
        request: Union[BookingRequest, Mapping[str, Any]],
        now: Optional[DateTime] = None,
    ) -> BookingResult:
        """
        Create a booking for an event type.

        Flow:
        1. Validate the request
        2. Check the event type exists and is not deleted
        3. Compute the end time from the start time and the event duration
        4. Reject start times that are not in the future
        5. Advisory overlap check against current reservations
        6. Commit through the store, which re-checks overlap atomically

        Both overlap failures surface the same generic message, so callers
        cannot tell a stale read from a lost race.
        """
        if not isinstance(request, BookingRequest):
            try:
                request = BookingRequest.model_validate(request)
            except ValidationError as exc:
                return BookingResult(success=False, error=_first_validation_message(exc))

        try:
            return await self._create(request, now)
        except SchedulingError:
            logger.exception("Error creating booking for event type %r", request.event_type_id)
            return BookingResult(success=False, error=GENERIC_FAILURE_MESSAGE)

    async def _create(self, request: BookingRequest, now: Optional[DateTime]) -> BookingResult:
        try:
            event_type = await self._store.get_event_type(request.event_type_id)
        except NotFound:
            return BookingResult(success=False, error=EVENT_GONE_MESSAGE)

        if event_type.deleted:
            return BookingResult(success=False, error=EVENT_DELETED_MESSAGE)

        start = request.start_instant()
        interval = TimeRange(start=start, end=start.add(minutes=event_type.duration_minutes))

        cutoff = ensure_instant(now) if now is not None else pendulum.now(pendulum.UTC)
        if interval.start <= cutoff:
            return BookingResult(success=False, error=PAST_SLOT_MESSAGE)

        reserved = await self._store.get_reserved_intervals(event_type.id, interval.start, interval.end)
        if not is_free(interval, event_type.id, reserved):
            logger.info("Rejected booking for %s at %s: slot already taken", event_type.id, interval)
            return BookingResult(success=False, error=SLOT_UNAVAILABLE_MESSAGE)

        try:
            booking_id = await self._store.create_reservation(event_type.id, interval, request.invitee())
        except SlotUnavailable as exc:
            logger.info("Booking for %s at %s lost a concurrent race: %s", event_type.id, interval, exc)
            return BookingResult(success=False, error=SLOT_UNAVAILABLE_MESSAGE)

        logger.info("Created booking %s for %s at %s", booking_id, event_type.id, interval)
        return BookingResult(success=True, booking_id=booking_id)

    async def get_upcoming_bookings(
        self,
        host_id: str,
        now: Optional[DateTime] = None,
    ) -> List[Reservation]:
        """Return the host's future bookings, soonest first."""
        cutoff = ensure_instant(now) if now is not None else pendulum.now(pendulum.UTC)
        reservations = await self._store.list_reservations(host_id, cutoff)
        return sorted(reservations, key=lambda reservation: reservation.interval.start)
