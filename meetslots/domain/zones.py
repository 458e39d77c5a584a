"""
Wall-clock / zone conversion and day projection.

Every cross-zone computation goes through a UTC instant. Offsets are taken
from the zone's rules for the specific date being converted (pendulum's tz
database), never from the offset in effect "now", so dates on the other side
of a DST transition convert correctly.
"""

import re
from datetime import date, datetime, time
from typing import Tuple, Union

import pendulum
from pendulum import Date, DateTime
from pendulum.tz.exceptions import InvalidTimezone
from pendulum.tz.timezone import Timezone

from .exceptions import InvalidTime, InvalidZone
from .models import TimeRange, Weekday

# 24-hour "HH:MM", 00:00 to 23:59
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
# Offset after the time part: "...:00Z", "...:00+04:00", "...:00.5-0530"
OFFSET_PATTERN = re.compile(r":\d{2}(\.\d+)?(Z|[+-]\d{2}(:?\d{2})?)$", re.IGNORECASE)

DISPLAY_FORMAT = "h:mm A"

TimeLike = Union[str, time]
DateLike = Union[str, date]


def get_zone(name: str) -> Timezone:
    """
    Resolve an IANA zone identifier.

    Raises:
        InvalidZone: If the name is not a recognized IANA zone
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidZone(f"Invalid timezone: {name!r}")

    try:
        return pendulum.timezone(name.strip())
    except (InvalidTimezone, ValueError) as exc:
        raise InvalidZone(f"Invalid timezone: {name!r}") from exc


def is_valid_zone(name: str) -> bool:
    try:
        get_zone(name)
    except InvalidZone:
        return False
    return True


def parse_time(value: TimeLike) -> time:
    """
    Parse a 24-hour "HH:MM" string into a ``datetime.time``.

    Raises:
        InvalidTime: If the value is not a valid "HH:MM" time
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)

    if not isinstance(value, str):
        raise InvalidTime(f"Time must be a string in HH:MM format, got {value!r}")

    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidTime(f"Time must be in HH:MM format (e.g., 09:00), got {value!r}")

    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def parse_date(value: DateLike) -> Date:
    """
    Parse a "YYYY-MM-DD" calendar date.

    Raises:
        InvalidTime: If the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        raise InvalidTime(f"Expected a calendar date, got a datetime: {value!r}")

    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)

    if not isinstance(value, str) or not DATE_PATTERN.match(value.strip()):
        raise InvalidTime(f"Invalid date format. Expected YYYY-MM-DD, got {value!r}")

    year, month, day = (int(part) for part in value.strip().split("-"))
    try:
        return pendulum.date(year, month, day)
    except ValueError as exc:
        raise InvalidTime(f"Invalid calendar date: {value!r}") from exc


def ensure_instant(value: Union[str, datetime], require_offset: bool = False) -> DateTime:
    """
    Coerce an aware datetime or an ISO 8601 string into a UTC instant.

    Strings without an offset are read as UTC unless ``require_offset`` is set,
    in which case they are rejected. Naive ``datetime`` objects are always
    rejected, since they carry no zone to anchor them.
    """
    if isinstance(value, str):
        if require_offset and not OFFSET_PATTERN.search(value.strip()):
            raise InvalidTime(f"Instant must include a UTC offset (e.g. Z or +04:00), got {value!r}")
        try:
            parsed = pendulum.parse(value.strip())
        except ValueError as exc:
            raise InvalidTime(f"Invalid ISO 8601 instant: {value!r}") from exc
        if not isinstance(parsed, DateTime):
            raise InvalidTime(f"Invalid ISO 8601 instant: {value!r}")
        return parsed.in_timezone(pendulum.UTC)

    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            raise InvalidTime(f"Naive datetime has no zone: {value!r}")
        return pendulum.instance(value).in_timezone(pendulum.UTC)

    raise InvalidTime(f"Expected a datetime or ISO 8601 string, got {value!r}")


def to_instant(day: DateLike, local_time: TimeLike, zone: str) -> DateTime:
    """
    Convert a wall-clock (date, "HH:MM") in ``zone`` to a UTC instant.

    Local times inside a spring-forward gap are moved forward by the gap;
    ambiguous fall-back times resolve to the later (post-transition) offset.
    """
    tz = get_zone(zone)
    calendar_day = parse_date(day)
    clock = parse_time(local_time)

    local = pendulum.datetime(
        calendar_day.year,
        calendar_day.month,
        calendar_day.day,
        clock.hour,
        clock.minute,
        tz=tz,
    )
    return local.in_timezone(pendulum.UTC)


def to_local(instant: DateTime, zone: str) -> Tuple[Date, str]:
    """Convert a UTC instant to the (date, "HH:MM") wall clock of ``zone``."""
    local = ensure_instant(instant).in_timezone(get_zone(zone))
    return local.date(), local.format("HH:mm")


def format_local(instant: DateTime, zone: str, fmt: str = DISPLAY_FORMAT) -> str:
    """Render an instant for display in ``zone`` (e.g. "9:00 AM")."""
    return ensure_instant(instant).in_timezone(get_zone(zone)).format(fmt)


def weekday_of(instant: DateTime, zone: str) -> Weekday:
    """Return the weekday that ``instant`` falls on, as experienced in ``zone``."""
    local = ensure_instant(instant).in_timezone(get_zone(zone))
    return Weekday.from_index(local.weekday())


def day_bounds(day: DateLike, zone: str) -> TimeRange:
    """
    Return the UTC range covering one local calendar day in ``zone``.

    The range is 23 or 25 hours long on DST transition days.
    """
    tz = get_zone(zone)
    calendar_day = parse_date(day)

    start_local = pendulum.datetime(calendar_day.year, calendar_day.month, calendar_day.day, tz=tz)
    end_local = start_local.add(days=1)

    return TimeRange(
        start=start_local.in_timezone(pendulum.UTC),
        end=end_local.in_timezone(pendulum.UTC),
    )
