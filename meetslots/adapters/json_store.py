"""
JSON-file backed store, used by the CLI.

The file holds three lists::

    {
      "hosts": [{"id": "...", "timezone": "...", "availability": {...}}],
      "event_types": [{"id": "...", "host_id": "...", "duration_minutes": 30}],
      "reservations": [{"id": "...", "event_type_id": "...", "start": "...", "end": "...",
                        "invitee": {"name": "...", "email": "...", "timezone": "..."}}]
    }

Host availability is kept verbatim, so files written before the
``{enabled, blocks}`` migration still load.

Several processes may share one file. Every write holds an exclusive lock
on a sibling ``.lock`` file, reloads the file under that lock, and only then
runs the overlap re-check and the insert, so a commit always checks against
what is on disk.
"""

import json
import logging
import os
import tempfile
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Any, Dict, Iterator, List

from filelock import FileLock, Timeout

from ..domain.exceptions import SchedulingError, StoreError
from ..domain.models import EventType, HostRecord, InviteeInfo, Reservation, TimeRange
from ..domain.schedule import DEFAULT_TIMEZONE
from ..domain.zones import ensure_instant
from .memory_store import InMemoryStore

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 10


class JsonFileStore(InMemoryStore):
    """In-memory store that writes every change back to a JSON file."""

    def __init__(self, path: Path, lock_timeout: float = LOCK_TIMEOUT_SECONDS) -> None:
        super().__init__()
        self.path = Path(path)
        self._file_lock = FileLock(str(self.path.with_name(f"{self.path.name}.lock")), timeout=lock_timeout)

    @classmethod
    def load(cls, path: Path) -> "JsonFileStore":
        """
        Load a store from ``path``.

        A missing file gives an empty store; the file is created on the first write.

        Raises:
            StoreError: If the file is not valid JSON or a record is malformed
        """
        store = cls(path)
        store._apply(store._read_records())
        return store

    async def create_reservation(self, event_type_id: str, interval: TimeRange, invitee: InviteeInfo) -> str:
        with self._exclusive():
            return await super().create_reservation(event_type_id, interval, invitee)

    async def save_schedule(self, host_id: str, record: Dict[str, Any]) -> None:
        with self._exclusive():
            await super().save_schedule(host_id, record)

    async def save_timezone(self, host_id: str, timezone: str) -> None:
        with self._exclusive():
            await super().save_timezone(host_id, timezone)

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        with self._lock:
            return {
                "hosts": [_host_to_dict(host) for host in self._hosts.values()],
                "event_types": [_event_type_to_dict(et) for et in self._event_types.values()],
                "reservations": [
                    _reservation_to_dict(reservation)
                    for reservation in sorted(self._reservations.values(), key=lambda r: r.interval.start)
                ],
            }

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the file lock and bring memory up to date with the file."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file_lock.acquire()
        except (OSError, Timeout) as exc:
            raise StoreError(f"Could not lock data file {self.path}: {exc}") from exc

        try:
            self._apply(self._read_records())
            yield
        finally:
            self._file_lock.release()

    def _read_records(self) -> Dict[str, Any]:
        if not self.path.exists():
            logger.info("Data file %s does not exist yet, starting empty", self.path)
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read data file {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise StoreError(f"Data file {self.path} must contain an object at the root level.")
        return data

    def _apply(self, data: Dict[str, Any]) -> None:
        """Replace everything held in memory with the records in ``data``."""
        with self._lock:
            self._hosts.clear()
            self._event_types.clear()
            self._reservations.clear()
            self._starts.clear()

            try:
                for raw in data.get("hosts", []):
                    self.add_host(_host_from_dict(raw))
                for raw in data.get("event_types", []):
                    self.add_event_type(_event_type_from_dict(raw))
                for raw in data.get("reservations", []):
                    self.add_reservation(_reservation_from_dict(raw))
            except (KeyError, TypeError, ValueError, SchedulingError) as exc:
                raise StoreError(f"Malformed record in {self.path}: {exc}") from exc

    def _persist(self) -> None:
        payload = json.dumps(self.to_dict(), indent=2)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        except OSError as exc:
            raise StoreError(f"Could not write data file {self.path}: {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            with suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise StoreError(f"Could not write data file {self.path}: {exc}") from exc


def _host_from_dict(raw: Dict[str, Any]) -> HostRecord:
    return HostRecord(
        id=str(raw["id"]),
        timezone=raw.get("timezone") or DEFAULT_TIMEZONE,
        availability=raw.get("availability"),
        name=raw.get("name", ""),
    )


def _host_to_dict(host: HostRecord) -> Dict[str, Any]:
    return {
        "id": host.id,
        "name": host.name,
        "timezone": host.timezone,
        "availability": host.availability,
    }


def _event_type_from_dict(raw: Dict[str, Any]) -> EventType:
    return EventType(
        id=str(raw["id"]),
        host_id=str(raw["host_id"]),
        duration_minutes=int(raw["duration_minutes"]),
        name=raw.get("name", ""),
        deleted=bool(raw.get("deleted", False)),
    )


def _event_type_to_dict(event_type: EventType) -> Dict[str, Any]:
    return {
        "id": event_type.id,
        "host_id": event_type.host_id,
        "name": event_type.name,
        "duration_minutes": event_type.duration_minutes,
        "deleted": event_type.deleted,
    }


def _reservation_from_dict(raw: Dict[str, Any]) -> Reservation:
    invitee = raw.get("invitee", {})
    created_at = raw.get("created_at")
    return Reservation(
        id=str(raw["id"]),
        event_type_id=str(raw["event_type_id"]),
        interval=TimeRange(start=ensure_instant(raw["start"]), end=ensure_instant(raw["end"])),
        invitee=InviteeInfo(
            name=invitee.get("name", ""),
            email=invitee.get("email", ""),
            timezone=invitee.get("timezone", DEFAULT_TIMEZONE),
            notes=invitee.get("notes", ""),
        ),
        created_at=ensure_instant(created_at) if created_at else None,
    )


def _reservation_to_dict(reservation: Reservation) -> Dict[str, Any]:
    return {
        "id": reservation.id,
        "event_type_id": reservation.event_type_id,
        "start": reservation.interval.start.to_iso8601_string(),
        "end": reservation.interval.end.to_iso8601_string(),
        "invitee": {
            "name": reservation.invitee.name,
            "email": reservation.invitee.email,
            "timezone": reservation.invitee.timezone,
            "notes": reservation.invitee.notes,
        },
        "created_at": reservation.created_at.to_iso8601_string() if reservation.created_at else None,
    }
