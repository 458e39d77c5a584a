"""
In-memory store for hosts, event types and reservations.

Implements every store protocol used by the services. The reservation
commit performs its overlap re-check and the insert under one lock, and
keeps a uniqueness index on (event type, start instant), so concurrent
writers - threads or coroutines - can never both book the same interval.
"""

import logging
import threading
import uuid
from typing import Any, Dict, List, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import InvalidIdentifier, NotFound, SlotUnavailable
from ..domain.models import (
    EventType,
    HostRecord,
    InviteeInfo,
    Reservation,
    ReservedInterval,
    TimeRange,
    WeeklySchedule,
)
from ..domain.schedule import DEFAULT_TIMEZONE, normalize
from ..domain.zones import ensure_instant

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Thread-safe store keeping all records in dictionaries."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._hosts: Dict[str, HostRecord] = {}
        self._event_types: Dict[str, EventType] = {}
        self._reservations: Dict[str, Reservation] = {}
        self._starts: Dict[Tuple[str, str], str] = {}

    # Seeding

    def add_host(self, host: HostRecord) -> None:
        if not host.id:
            raise InvalidIdentifier("Host id is required")
        with self._lock:
            self._hosts[host.id] = host

    def add_event_type(self, event_type: EventType) -> None:
        if not event_type.id:
            raise InvalidIdentifier("Event type id is required")
        with self._lock:
            self._event_types[event_type.id] = event_type

    def add_reservation(self, reservation: Reservation) -> None:
        """Insert an existing reservation as-is, without the overlap check."""
        with self._lock:
            self._insert(reservation)

    # Lookups

    async def get_host(self, host_id: str) -> HostRecord:
        with self._lock:
            host = self._hosts.get(host_id)
        if host is None:
            raise NotFound(f"Host not found: {host_id}")
        return host

    async def get_event_type(self, event_type_id: str) -> EventType:
        with self._lock:
            event_type = self._event_types.get(event_type_id)
        if event_type is None:
            raise NotFound(f"Event type not found: {event_type_id}")
        return event_type

    async def get_weekly_schedule(self, host_id: str) -> Tuple[WeeklySchedule, str]:
        host = await self.get_host(host_id)
        return normalize(host.availability), host.timezone or DEFAULT_TIMEZONE

    async def get_reserved_intervals(
        self,
        event_type_id: str,
        window_start: DateTime,
        window_end: DateTime,
    ) -> List[ReservedInterval]:
        window = TimeRange(start=ensure_instant(window_start), end=ensure_instant(window_end))
        with self._lock:
            matching = [
                reservation.as_reserved_interval()
                for reservation in self._reservations.values()
                if reservation.event_type_id == event_type_id and reservation.interval.overlaps(window)
            ]
        return sorted(matching, key=lambda interval: interval.start)

    async def list_reservations(self, host_id: str, since: DateTime) -> List[Reservation]:
        cutoff = ensure_instant(since)
        with self._lock:
            event_type_ids = {
                event_type.id for event_type in self._event_types.values()
                if event_type.host_id == host_id and not event_type.deleted
            }
            return [
                reservation for reservation in self._reservations.values()
                if reservation.event_type_id in event_type_ids and reservation.interval.start >= cutoff
            ]

    def reservations_for(self, event_type_id: str) -> List[Reservation]:
        with self._lock:
            matching = [r for r in self._reservations.values() if r.event_type_id == event_type_id]
        return sorted(matching, key=lambda reservation: reservation.interval.start)

    # Writes

    async def create_reservation(
        self,
        event_type_id: str,
        interval: TimeRange,
        invitee: InviteeInfo,
    ) -> str:
        """
        Re-check overlap and insert the reservation as one atomic step.

        Raises:
            NotFound: If the event type does not exist
            SlotUnavailable: If the interval overlaps an existing reservation
        """
        with self._lock:
            if event_type_id not in self._event_types:
                raise NotFound(f"Event type not found: {event_type_id}")

            if (event_type_id, interval.start.to_iso8601_string()) in self._starts:
                raise SlotUnavailable(f"A reservation already starts at {interval.start}")

            for existing in self._reservations.values():
                if existing.event_type_id == event_type_id and existing.interval.overlaps(interval):
                    raise SlotUnavailable(f"{interval} overlaps reservation {existing.id}")

            reservation = Reservation(
                id=uuid.uuid4().hex,
                event_type_id=event_type_id,
                interval=interval,
                invitee=invitee,
                created_at=pendulum.now(pendulum.UTC),
            )
            self._insert(reservation)

            try:
                self._persist()
            except Exception:
                self._remove(reservation.id)
                raise

        return reservation.id

    async def save_schedule(self, host_id: str, record: Dict[str, Any]) -> None:
        with self._lock:
            host = self._hosts.get(host_id)
            if host is None:
                raise NotFound(f"Host not found: {host_id}")
            previous = host.availability
            host.availability = record
            try:
                self._persist()
            except Exception:
                host.availability = previous
                raise

    async def save_timezone(self, host_id: str, timezone: str) -> None:
        with self._lock:
            host = self._hosts.get(host_id)
            if host is None:
                raise NotFound(f"Host not found: {host_id}")
            previous = host.timezone
            host.timezone = timezone
            try:
                self._persist()
            except Exception:
                host.timezone = previous
                raise

    def _insert(self, reservation: Reservation) -> None:
        self._reservations[reservation.id] = reservation
        self._starts[(reservation.event_type_id, reservation.interval.start.to_iso8601_string())] = reservation.id

    def _remove(self, reservation_id: str) -> None:
        reservation = self._reservations.pop(reservation_id)
        self._starts.pop((reservation.event_type_id, reservation.interval.start.to_iso8601_string()), None)

    def _persist(self) -> None:
        """Hook for subclasses that write through to durable storage."""
