"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Keep snapshots in files, in memory for tests, or anywhere else
   a key-value pair can live
2. Keep ledger logic decoupled from the storage medium

The persistence medium is modelled as a plain key-value store. The
backup-on-write protocol (copy current to backup, write, read back)
lives once in StateStore on top of any backend.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from allowance_tracker.errors import AllowanceTrackerError
from allowance_tracker.models.audit import AuditEvent
from allowance_tracker.models.ledger import AppState


class KeyValueBackend(ABC):
    """
    Abstract string key-value store.

    Implementations raise StorageError on any I/O failure.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under ``key``.

        Returns:
            The stored text, or None if the key was never written

        Raises:
            StructuralIntegrityError: If the stored bytes are not text
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store ``value`` under ``key``, replacing any previous value.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is not an error."""
        pass


class LoadSource(str, Enum):
    """Where a loaded state came from."""
    PRIMARY = "primary"
    BACKUP = "backup"
    EMPTY = "empty"  # Nothing persisted yet
    FRESH = "fresh"  # Primary and backup both unusable


class LoadResult(BaseModel):
    """
    Outcome of loading with recovery.

    ``data_loss`` is set when neither snapshot was usable and the
    ledger starts from an empty state.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: AppState
    source: LoadSource
    warning: Optional[str] = None
    data_loss: Optional["DataLossError"] = None


class StateStorageInterface(ABC):
    """
    Abstract interface for AppState snapshots.
    """

    @abstractmethod
    def load(self) -> Optional[AppState]:
        """
        Load the current snapshot.

        Returns:
            The validated state, or None if nothing was persisted yet

        Raises:
            StructuralIntegrityError: If the snapshot fails validation
        """
        pass

    @abstractmethod
    def persist(self, state: AppState) -> None:
        """
        Durably store ``state``, keeping the previous snapshot as backup.

        Raises:
            PersistError: If the write failed but the previous snapshot was restored
            CriticalPersistenceError: If the previous snapshot could not be restored either
        """
        pass

    @abstractmethod
    def load_with_recovery(self) -> LoadResult:
        """
        Load the current snapshot, falling back to the backup and finally
        to an empty state. Never raises for invalid data.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one ledger operation).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(AllowanceTrackerError):
    """Base exception for storage operations."""
    pass


class StructuralIntegrityError(StorageError):
    """Persisted state failed schema validation."""
    pass


class DataLossError(StorageError):
    """Neither the current snapshot nor the backup could be loaded."""
    pass


class PersistError(StorageError):
    """A save or its read-back verification failed."""
    pass


class CriticalPersistenceError(PersistError):
    """
    A save failed and the previous snapshot could not be restored.

    Data is only safe in memory until this is resolved.
    """
    pass


LoadResult.model_rebuild()
