"""
Normalization and validation of stored weekly availability.

Availability records exist in two on-disk shapes, a migration artifact:

    legacy:   {"monday": [{"start": "09:00", "end": "17:00"}], "sunday": null}
    current:  {"monday": {"enabled": true, "blocks": [{"start": "09:00", ...}]}}

``normalize`` is the tolerant read path used before resolution: it decodes
either shape and degrades anything it cannot read to "unavailable" for that
day. ``validate_schedule`` is the strict write path used when a host updates
their settings.
"""

import logging
from enum import Enum
from typing import Any, Dict, Mapping, Sequence, Tuple

from .exceptions import InvalidBlock, InvalidTime
from .models import TimeBlock, Weekday, WeeklySchedule
from .zones import parse_time

logger = logging.getLogger(__name__)


DEFAULT_TIMEZONE = "UTC"

# Monday-Friday 09:00-17:00, weekends off
DEFAULT_AVAILABILITY: Dict[str, Any] = {
    "monday": [{"start": "09:00", "end": "17:00"}],
    "tuesday": [{"start": "09:00", "end": "17:00"}],
    "wednesday": [{"start": "09:00", "end": "17:00"}],
    "thursday": [{"start": "09:00", "end": "17:00"}],
    "friday": [{"start": "09:00", "end": "17:00"}],
    "saturday": None,
    "sunday": None,
}


class DayShape(Enum):
    """Tag for the shape a single day's stored availability was found in."""

    ABSENT = "absent"
    LEGACY_LIST = "legacy_list"
    RECORD = "record"
    UNRECOGNIZED = "unrecognized"


def classify_day(value: Any) -> DayShape:
    if value is None:
        return DayShape.ABSENT
    if isinstance(value, (list, tuple)):
        return DayShape.LEGACY_LIST
    if isinstance(value, Mapping) and "enabled" in value and "blocks" in value:
        return DayShape.RECORD
    return DayShape.UNRECOGNIZED


def parse_block(raw: Any) -> TimeBlock:
    """
    Build a TimeBlock from a ``{"start": "HH:MM", "end": "HH:MM"}`` mapping.

    Raises:
        InvalidTime: If the mapping is malformed or a time is not "HH:MM"
        InvalidBlock: If the block does not end after it starts
    """
    if isinstance(raw, TimeBlock):
        return raw

    if not isinstance(raw, Mapping) or "start" not in raw or "end" not in raw:
        raise InvalidTime(f"Time block must have a start and an end, got {raw!r}")

    return TimeBlock(start=parse_time(raw["start"]), end=parse_time(raw["end"]))


def _decode_day(weekday: Weekday, value: Any) -> Tuple[TimeBlock, ...]:
    shape = classify_day(value)

    if shape is DayShape.ABSENT:
        return ()

    if shape is DayShape.UNRECOGNIZED:
        logger.warning("Unrecognized availability shape for %s, treating as unavailable", weekday.value)
        return ()

    if shape is DayShape.RECORD:
        if not value["enabled"]:
            return ()
        raw_blocks = value["blocks"]
        if not isinstance(raw_blocks, (list, tuple)):
            logger.warning("Availability blocks for %s are not a list, treating as unavailable", weekday.value)
            return ()
    else:
        raw_blocks = value

    try:
        return tuple(parse_block(raw_block) for raw_block in raw_blocks)
    except (InvalidTime, InvalidBlock) as exc:
        logger.warning("Malformed availability for %s, treating as unavailable: %s", weekday.value, exc)
        return ()


def normalize(raw: Any) -> WeeklySchedule:
    """
    Decode a stored availability record into a WeeklySchedule.

    Never raises: unknown or malformed days come back as unavailable.
    """
    if isinstance(raw, WeeklySchedule):
        return raw

    if raw is None:
        return WeeklySchedule()

    if not isinstance(raw, Mapping):
        logger.warning("Availability record is not a mapping (%s), treating host as unavailable", type(raw).__name__)
        return WeeklySchedule()

    days: Dict[Weekday, Tuple[TimeBlock, ...]] = {}
    for weekday in Weekday:
        blocks = _decode_day(weekday, raw.get(weekday.value))
        if blocks:
            days[weekday] = blocks

    return WeeklySchedule(days=days)


def _validate_day(weekday: Weekday, value: Any) -> Tuple[TimeBlock, ...]:
    shape = classify_day(value)

    if shape is DayShape.ABSENT:
        return ()

    if shape is DayShape.UNRECOGNIZED:
        raise InvalidBlock(f"Unrecognized availability for {weekday.label}: {value!r}")

    if shape is DayShape.RECORD:
        if not isinstance(value["enabled"], bool):
            raise InvalidBlock(f"'enabled' for {weekday.label} must be true or false")
        if not isinstance(value["blocks"], (list, tuple)):
            raise InvalidBlock(f"'blocks' for {weekday.label} must be a list")
        if not value["enabled"]:
            return ()
        raw_blocks: Sequence[Any] = value["blocks"]
    else:
        raw_blocks = value

    if not raw_blocks:
        raise InvalidBlock(f"{weekday.label} must have at least one time block if enabled")

    blocks = sorted((parse_block(raw_block) for raw_block in raw_blocks), key=lambda b: b.start)

    for previous, current in zip(blocks, blocks[1:]):
        if previous.overlaps(current):
            raise InvalidBlock(f"{weekday.label} has overlapping time blocks: {previous} and {current}")

    return tuple(blocks)


def validate_schedule(raw: Any) -> WeeklySchedule:
    """
    Strictly validate availability submitted through the host settings path.

    Accepts either stored shape per day. Blocks are returned sorted by start.

    Raises:
        InvalidBlock: Unknown weekday keys, empty enabled days, overlapping
            blocks, or blocks that do not end after they start
        InvalidTime: Times that are not valid "HH:MM"
    """
    if not isinstance(raw, Mapping):
        raise InvalidBlock("Availability must be a mapping of weekday to time blocks")

    known = {weekday.value for weekday in Weekday}
    unknown = sorted(str(key) for key in raw if key not in known)
    if unknown:
        raise InvalidBlock(f"Unknown weekday(s) in availability: {', '.join(unknown)}")

    days: Dict[Weekday, Tuple[TimeBlock, ...]] = {}
    for weekday in Weekday:
        blocks = _validate_day(weekday, raw.get(weekday.value))
        if blocks:
            days[weekday] = blocks

    return WeeklySchedule(days=days)


def to_record(schedule: WeeklySchedule) -> Dict[str, Dict[str, Any]]:
    """Serialize a schedule to the current ``{enabled, blocks}`` storage shape."""
    return {
        weekday.value: {
            "enabled": schedule.is_available(weekday),
            "blocks": [block.to_dict() for block in schedule.blocks_for(weekday)],
        }
        for weekday in Weekday
    }


def default_schedule() -> WeeklySchedule:
    return normalize(DEFAULT_AVAILABILITY)
