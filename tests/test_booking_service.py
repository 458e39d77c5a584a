"""
Tests for the BookingService, including concurrent double booking.
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pendulum
import pytest

from meetslots.adapters.memory_store import InMemoryStore
from meetslots.domain.exceptions import StoreError
from meetslots.domain.models import EventType, HostRecord, InviteeInfo, Reservation, TimeRange
from meetslots.domain.schedule import DEFAULT_AVAILABILITY
from meetslots.services.booking import (
    EVENT_DELETED_MESSAGE,
    EVENT_GONE_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    PAST_SLOT_MESSAGE,
    SLOT_UNAVAILABLE_MESSAGE,
    BookingRequest,
    BookingService,
)

NOW = pendulum.datetime(2026, 1, 5, 12, 0, tz="UTC")
SLOT_START = "2026-01-07T18:30:00Z"


def _utc(day, hour, minute=0):
    return pendulum.datetime(2026, 1, day, hour, minute, tz="UTC")


def _seed(store: InMemoryStore) -> InMemoryStore:
    store.add_host(HostRecord(id="testhost", timezone="America/New_York", availability=DEFAULT_AVAILABILITY))
    store.add_event_type(EventType(id="quick-chat", host_id="testhost", duration_minutes=30))
    store.add_event_type(EventType(id="retired", host_id="testhost", duration_minutes=30, deleted=True))
    return store


def _request(**overrides):
    data = {
        "event_type_id": "quick-chat",
        "start_time": SLOT_START,
        "invitee_name": "Ada Lovelace",
        "invitee_email": "ada@example.com",
        "invitee_timezone": "Asia/Dubai",
        "invitee_notes": "",
    }
    data.update(overrides)
    return data


def _reservation(reservation_id, event_type_id, start, minutes=30):
    return Reservation(
        id=reservation_id,
        event_type_id=event_type_id,
        interval=TimeRange(start=start, end=start.add(minutes=minutes)),
        invitee=InviteeInfo(name="Existing", email="existing@example.com", timezone="UTC"),
    )


class RacingStore(InMemoryStore):
    """Yields to the event loop between reading reservations and returning them."""

    def __init__(self):
        super().__init__()
        self.snapshots = []

    async def get_reserved_intervals(self, event_type_id, window_start, window_end):
        snapshot = await super().get_reserved_intervals(event_type_id, window_start, window_end)
        self.snapshots.append(snapshot)
        await asyncio.sleep(0)
        return snapshot


class BarrierStore(InMemoryStore):
    """Holds every reader until all racing threads have taken their snapshot."""

    def __init__(self, parties):
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)

    async def get_reserved_intervals(self, event_type_id, window_start, window_end):
        snapshot = await super().get_reserved_intervals(event_type_id, window_start, window_end)
        self.barrier.wait()
        return snapshot


class FailingStore(InMemoryStore):
    async def create_reservation(self, event_type_id, interval, invitee):
        raise StoreError("disk full")


class TestCreateBooking:
    """Tests for the single-writer booking flow."""

    def test_books_free_slot(self):
        store = _seed(InMemoryStore())
        service = BookingService(store=store)

        result = asyncio.run(service.create_booking(_request(), now=NOW))

        assert result.success
        assert result.booking_id
        [reservation] = store.reservations_for("quick-chat")
        assert reservation.id == result.booking_id
        assert reservation.interval == TimeRange(start=_utc(7, 18, 30), end=_utc(7, 19))
        assert reservation.invitee.timezone == "Asia/Dubai"

    def test_end_time_comes_from_event_duration(self):
        store = _seed(InMemoryStore())
        store.add_event_type(EventType(id="consultation", host_id="testhost", duration_minutes=60))

        asyncio.run(BookingService(store=store).create_booking(_request(event_type_id="consultation"), now=NOW))

        [reservation] = store.reservations_for("consultation")
        assert reservation.interval.duration_minutes() == 60

    def test_accepts_offset_start_times(self):
        store = _seed(InMemoryStore())

        result = asyncio.run(
            BookingService(store=store).create_booking(_request(start_time="2026-01-07T22:30:00+04:00"), now=NOW)
        )

        assert result.success
        assert store.reservations_for("quick-chat")[0].interval.start == _utc(7, 18, 30)

    def test_email_is_normalized(self):
        store = _seed(InMemoryStore())

        asyncio.run(BookingService(store=store).create_booking(_request(invitee_email="  Ada@Example.COM "), now=NOW))

        assert store.reservations_for("quick-chat")[0].invitee.email == "ada@example.com"

    def test_taken_slot_rejected(self):
        store = _seed(InMemoryStore())
        store.add_reservation(_reservation("existing", "quick-chat", _utc(7, 18, 15)))

        result = asyncio.run(BookingService(store=store).create_booking(_request(), now=NOW))

        assert not result.success
        assert result.error == SLOT_UNAVAILABLE_MESSAGE
        assert len(store.reservations_for("quick-chat")) == 1

    def test_adjacent_booking_allowed(self):
        store = _seed(InMemoryStore())
        store.add_reservation(_reservation("existing", "quick-chat", _utc(7, 18)))

        result = asyncio.run(BookingService(store=store).create_booking(_request(), now=NOW))

        assert result.success

    def test_other_event_type_does_not_block(self):
        store = _seed(InMemoryStore())
        store.add_event_type(EventType(id="consultation", host_id="testhost", duration_minutes=60))
        store.add_reservation(_reservation("other", "consultation", _utc(7, 18, 30)))

        result = asyncio.run(BookingService(store=store).create_booking(_request(), now=NOW))

        assert result.success

    def test_past_slot_rejected(self):
        store = _seed(InMemoryStore())

        result = asyncio.run(
            BookingService(store=store).create_booking(_request(start_time="2026-01-05T12:00:00Z"), now=NOW)
        )

        assert result.error == PAST_SLOT_MESSAGE
        assert store.reservations_for("quick-chat") == []

    def test_unknown_event_type(self):
        result = asyncio.run(
            BookingService(store=_seed(InMemoryStore())).create_booking(_request(event_type_id="nope"), now=NOW)
        )

        assert result.error == EVENT_GONE_MESSAGE

    def test_deleted_event_type(self):
        result = asyncio.run(
            BookingService(store=_seed(InMemoryStore())).create_booking(_request(event_type_id="retired"), now=NOW)
        )

        assert result.error == EVENT_DELETED_MESSAGE

    def test_store_failure_is_generic(self):
        result = asyncio.run(BookingService(store=_seed(FailingStore())).create_booking(_request(), now=NOW))

        assert not result.success
        assert result.error == GENERIC_FAILURE_MESSAGE


class TestBookingValidation:
    """Invalid submissions are rejected with the first field message."""

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"invitee_name": "   "}, "Name is required"),
            ({"invitee_name": "x" * 101}, "Name must be 100 characters or less"),
            ({"invitee_email": "not-an-email"}, "Please enter a valid email address"),
            ({"invitee_notes": "n" * 501}, "Notes must be 500 characters or less"),
            ({"invitee_timezone": "Mars/Base"}, "Invalid timezone. Please select a valid timezone."),
            ({"event_type_id": ""}, "Event type is required"),
        ],
    )
    def test_invalid_fields(self, overrides, message):
        store = _seed(InMemoryStore())

        result = asyncio.run(BookingService(store=store).create_booking(_request(**overrides), now=NOW))

        assert not result.success
        assert result.error == message
        assert store.reservations_for("quick-chat") == []

    def test_invalid_start_time(self):
        result = asyncio.run(
            BookingService(store=_seed(InMemoryStore())).create_booking(_request(start_time="2026-13-45T10:00:00Z"), now=NOW)
        )

        assert not result.success
        assert "Invalid ISO 8601 instant" in result.error

    @pytest.mark.parametrize("start_time", ["2026-01-07T18:30:00", "2026-01-07", "tomorrow"])
    def test_start_time_needs_offset(self, start_time):
        """A start without an offset is ambiguous and is not read as UTC."""
        store = _seed(InMemoryStore())

        result = asyncio.run(BookingService(store=store).create_booking(_request(start_time=start_time), now=NOW))

        assert not result.success
        assert "must include a UTC offset" in result.error
        assert store.reservations_for("quick-chat") == []

    def test_request_model_builds_invitee(self):
        request = BookingRequest(**_request(invitee_notes="  see you  "))

        assert request.invitee() == InviteeInfo(
            name="Ada Lovelace", email="ada@example.com", timezone="Asia/Dubai", notes="see you"
        )
        assert request.start_instant() == _utc(7, 18, 30)


class TestConcurrentBooking:
    """Two invitees racing for the same slot: exactly one wins."""

    def test_interleaved_coroutines(self):
        store = _seed(RacingStore())
        service = BookingService(store=store)

        async def race():
            return await asyncio.gather(
                service.create_booking(_request(invitee_email="first@example.com"), now=NOW),
                service.create_booking(_request(invitee_email="second@example.com"), now=NOW),
            )

        results = asyncio.run(race())

        # Both advisory checks saw a free slot
        assert store.snapshots == [[], []]
        assert sorted(result.success for result in results) == [False, True]
        loser = next(result for result in results if not result.success)
        assert loser.error == SLOT_UNAVAILABLE_MESSAGE
        assert len(store.reservations_for("quick-chat")) == 1

    def test_overlapping_starts_race(self):
        """Different start instants that overlap are caught by the store re-check."""
        store = _seed(RacingStore())
        store.add_event_type(EventType(id="consultation", host_id="testhost", duration_minutes=60))
        service = BookingService(store=store)

        async def race():
            return await asyncio.gather(
                service.create_booking(_request(event_type_id="consultation"), now=NOW),
                service.create_booking(_request(event_type_id="consultation", start_time="2026-01-07T19:00:00Z"), now=NOW),
            )

        results = asyncio.run(race())

        assert [result.success for result in results].count(True) == 1
        assert len(store.reservations_for("consultation")) == 1

    def test_parallel_threads(self):
        store = _seed(BarrierStore(parties=2))
        service = BookingService(store=store)

        def attempt(email):
            return asyncio.run(service.create_booking(_request(invitee_email=email), now=NOW))

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(attempt, ["first@example.com", "second@example.com"]))

        assert [result.success for result in results].count(True) == 1
        assert len(store.reservations_for("quick-chat")) == 1


class TestUpcomingBookings:
    """Tests for listing a host's upcoming bookings."""

    def test_future_bookings_sorted(self):
        store = _seed(InMemoryStore())
        store.add_reservation(_reservation("later", "quick-chat", _utc(9, 15)))
        store.add_reservation(_reservation("sooner", "quick-chat", _utc(7, 14)))
        store.add_reservation(_reservation("past", "quick-chat", _utc(2, 14)))
        store.add_reservation(_reservation("retired", "retired", _utc(8, 14)))

        upcoming = asyncio.run(BookingService(store=store).get_upcoming_bookings("testhost", now=NOW))

        assert [reservation.id for reservation in upcoming] == ["sooner", "later"]

    def test_other_hosts_excluded(self):
        store = _seed(InMemoryStore())
        store.add_host(HostRecord(id="otherhost"))
        store.add_event_type(EventType(id="other-chat", host_id="otherhost", duration_minutes=15))
        store.add_reservation(_reservation("theirs", "other-chat", _utc(7, 14), minutes=15))

        assert asyncio.run(BookingService(store=store).get_upcoming_bookings("testhost", now=NOW)) == []
