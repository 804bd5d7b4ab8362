"""Services package."""

from allowance_tracker.services.storage import (
    AuditStorageInterface,
    CriticalPersistenceError,
    DataLossError,
    FileKeyValueBackend,
    InMemoryAuditStorage,
    InMemoryKeyValueBackend,
    JsonLinesAuditStorage,
    KeyValueBackend,
    LoadResult,
    LoadSource,
    PersistError,
    StateStorageInterface,
    StateStore,
    StorageError,
    StructuralIntegrityError,
)

__all__ = [
    "AuditStorageInterface",
    "CriticalPersistenceError",
    "DataLossError",
    "FileKeyValueBackend",
    "InMemoryAuditStorage",
    "InMemoryKeyValueBackend",
    "JsonLinesAuditStorage",
    "KeyValueBackend",
    "LoadResult",
    "LoadSource",
    "PersistError",
    "StateStorageInterface",
    "StateStore",
    "StorageError",
    "StructuralIntegrityError",
]
