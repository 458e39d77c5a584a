"""
Service layer helpers that orchestrate stores and domain logic.
"""

from .availability import AvailabilityService, SchedulingStoreProtocol, SlotCalculationResult
from .booking import BookingRequest, BookingResult, BookingService, BookingStoreProtocol
from .host_settings import ActionResult, HostSettingsService, HostSettingsStoreProtocol

__all__ = [
    "ActionResult",
    "AvailabilityService",
    "BookingRequest",
    "BookingResult",
    "BookingService",
    "BookingStoreProtocol",
    "HostSettingsService",
    "HostSettingsStoreProtocol",
    "SchedulingStoreProtocol",
    "SlotCalculationResult",
]
