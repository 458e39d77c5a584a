"""
Domain layer - Pure business logic without external dependencies.
"""

from .admission import find_conflicts, is_free
from .models import (
    CandidateSlot,
    EventType,
    HostRecord,
    InviteeInfo,
    Reservation,
    ReservedInterval,
    TimeBlock,
    TimeRange,
    Weekday,
    WeeklySchedule,
    intervals_overlap,
)
from .schedule import normalize, to_record, validate_schedule
from .slot_calculator import ProjectionAnchor, SlotCalculator, tile_block

__all__ = [
    "CandidateSlot",
    "EventType",
    "HostRecord",
    "InviteeInfo",
    "ProjectionAnchor",
    "Reservation",
    "ReservedInterval",
    "SlotCalculator",
    "TimeBlock",
    "TimeRange",
    "Weekday",
    "WeeklySchedule",
    "find_conflicts",
    "intervals_overlap",
    "is_free",
    "normalize",
    "tile_block",
    "to_record",
    "validate_schedule",
]
