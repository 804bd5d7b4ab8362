"""
Storage Services Package

Provides abstract interfaces and concrete implementations for persistence.
Snapshots live in a key-value backend (files or memory) behind the
backup-on-write StateStore.
"""

from allowance_tracker.services.storage.interface import (
    AuditStorageInterface,
    CriticalPersistenceError,
    DataLossError,
    KeyValueBackend,
    LoadResult,
    LoadSource,
    PersistError,
    StateStorageInterface,
    StorageError,
    StructuralIntegrityError,
)
from allowance_tracker.services.storage.file_backend import (
    FileKeyValueBackend,
    JsonLinesAuditStorage,
)
from allowance_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryKeyValueBackend,
)
from allowance_tracker.services.storage.serialization import parse_state, serialize_state
from allowance_tracker.services.storage.state_store import StateStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueBackend",
    "StateStorageInterface",
    # Results
    "LoadResult",
    "LoadSource",
    # Exceptions
    "CriticalPersistenceError",
    "DataLossError",
    "PersistError",
    "StorageError",
    "StructuralIntegrityError",
    # Implementations
    "FileKeyValueBackend",
    "InMemoryAuditStorage",
    "InMemoryKeyValueBackend",
    "JsonLinesAuditStorage",
    "StateStore",
    # Serialization
    "parse_state",
    "serialize_state",
]
