"""
Booking admission check.

The check is advisory when run against a snapshot of reservations: two
writers can both see a slot as free before either commits. The store's
``create_reservation`` repeats the same overlap test atomically with the
insert, and that result is the authoritative one.
"""

from typing import Iterable, List, Union

from .exceptions import InvalidIdentifier
from .models import CandidateSlot, ReservedInterval, TimeRange, intervals_overlap


def _applies_to(interval: TimeRange, event_type_id: str) -> bool:
    owner = getattr(interval, "event_type_id", None)
    return owner is None or owner == event_type_id


def find_conflicts(
    candidate: Union[CandidateSlot, TimeRange],
    event_type_id: str,
    reserved: Iterable[TimeRange],
) -> List[TimeRange]:
    """Return the reservations of ``event_type_id`` that overlap ``candidate``."""
    if not isinstance(event_type_id, str) or not event_type_id.strip():
        raise InvalidIdentifier("Event type is required")

    return [
        interval for interval in reserved
        if _applies_to(interval, event_type_id)
        and intervals_overlap(candidate.start, candidate.end, interval.start, interval.end)
    ]


def is_free(
    candidate: Union[CandidateSlot, TimeRange],
    event_type_id: str,
    reserved: Iterable[ReservedInterval],
) -> bool:
    """
    Check whether ``candidate`` overlaps none of the given reservations.

    Reservations tagged with another event type are ignored. A taken slot
    is reported as ``False``, never raised.
    """
    return not find_conflicts(candidate, event_type_id, reserved)
