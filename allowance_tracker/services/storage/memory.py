"""
In-memory storage implementations.

Used by the test suite and by sessions that need no durability.
"""

from typing import Optional
from uuid import UUID

from allowance_tracker.models.audit import AuditEvent
from allowance_tracker.services.storage.interface import (
    AuditStorageInterface,
    KeyValueBackend,
)


class InMemoryKeyValueBackend(KeyValueBackend):
    """Dictionary-backed key-value store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit storage that keeps events in a list (oldest first)."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)
