"""
Domain-specific exception hierarchy for the scheduling engine.
"""


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidZone(SchedulingError, ValueError):
    """Raised when a time zone identifier is not a recognized IANA name."""


class InvalidTime(SchedulingError, ValueError):
    """Raised for malformed "HH:MM" times, dates, instants or durations."""


class InvalidBlock(SchedulingError, ValueError):
    """Raised when an availability block does not end after it starts."""


class InvalidIdentifier(SchedulingError, ValueError):
    """Raised when a host, event type or reservation id is blank."""


class NotFound(SchedulingError, LookupError):
    """Raised when no host, event type or schedule exists for an identifier."""


class SlotUnavailable(SchedulingError):
    """Raised by a store when a reservation overlaps an existing one at commit time."""


class StoreError(SchedulingError):
    """Raised when stored scheduling data cannot be read or written."""
