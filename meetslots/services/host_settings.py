"""
Host settings: reading and updating weekly availability and time zone.

This is the only write path for a host's schedule; everything it stores
has passed strict validation and is written in the current
``{enabled, blocks}`` shape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple

from ..domain.exceptions import InvalidBlock, InvalidTime, InvalidZone, NotFound
from ..domain.models import HostRecord, WeeklySchedule
from ..domain.schedule import DEFAULT_TIMEZONE, default_schedule, normalize, to_record, validate_schedule
from ..domain.zones import get_zone

logger = logging.getLogger(__name__)


class HostSettingsStoreProtocol(Protocol):
    """Protocol describing the store behaviour needed by host settings."""

    async def get_host(self, host_id: str) -> HostRecord:
        """Return the host or raise ``NotFound``."""

    async def save_schedule(self, host_id: str, record: Dict[str, Any]) -> None:
        """Persist an availability record for the host."""

    async def save_timezone(self, host_id: str, timezone: str) -> None:
        """Persist the host's IANA zone."""


@dataclass
class ActionResult:
    success: bool
    error: Optional[str] = None


class HostSettingsService:
    """Reads and updates a host's availability settings."""

    def __init__(self, store: HostSettingsStoreProtocol) -> None:
        self._store = store

    async def get_availability(self, host_id: str) -> Tuple[WeeklySchedule, str]:
        """
        Return the host's schedule and zone.

        Hosts that never saved a schedule get the default Monday-Friday
        09:00-17:00 schedule, and hosts without a zone get UTC.
        """
        host = await self._store.get_host(host_id)

        if host.availability is None:
            schedule = default_schedule()
        else:
            schedule = normalize(host.availability)

        return schedule, host.timezone or DEFAULT_TIMEZONE

    async def update_schedule(self, host_id: str, availability: Any) -> ActionResult:
        """Validate and store a new weekly schedule for the host."""
        try:
            schedule = validate_schedule(availability)
        except (InvalidTime, InvalidBlock) as exc:
            return ActionResult(success=False, error=str(exc))

        try:
            await self._store.save_schedule(host_id, to_record(schedule))
        except NotFound:
            return ActionResult(success=False, error="Host not found")

        logger.info("Updated availability for host %s", host_id)
        return ActionResult(success=True)

    async def update_timezone(self, host_id: str, timezone: str) -> ActionResult:
        """Validate and store a new IANA zone for the host."""
        try:
            get_zone(timezone)
        except InvalidZone as exc:
            return ActionResult(success=False, error=str(exc))

        try:
            await self._store.save_timezone(host_id, timezone.strip())
        except NotFound:
            return ActionResult(success=False, error="Host not found")

        logger.info("Updated timezone for host %s to %s", host_id, timezone)
        return ActionResult(success=True)
