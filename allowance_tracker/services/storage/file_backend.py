"""
File-system storage implementations.

FileKeyValueBackend keeps one JSON file per key inside a data
directory. Writes go to a temporary file that is moved into place, so
a crash mid-write never leaves a truncated snapshot behind.

JsonLinesAuditStorage appends audit events to a JSON Lines file.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog

from allowance_tracker.models.audit import AuditEvent
from allowance_tracker.services.storage.interface import (
    AuditStorageInterface,
    KeyValueBackend,
    StorageError,
    StructuralIntegrityError,
)


logger = structlog.get_logger(__name__)


class FileKeyValueBackend(KeyValueBackend):
    """
    Key-value store backed by ``<data_dir>/<key>.json`` files.
    """

    def __init__(self, data_dir: Union[str, Path]):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise StructuralIntegrityError(f"{path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{key}.", suffix=".tmp", dir=self._data_dir
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    Append-only audit log, one JSON object per line.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    def append_event(self, event: AuditEvent) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(event.to_json_line() + "\n")
        except OSError as e:
            raise StorageError(f"Failed to append audit event: {e}") from e
        return True

    def _read_events(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []

        events = []
        with self._path.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(AuditEvent.model_validate(json.loads(line)))
                except ValueError as e:
                    # A torn last line is expected after a crash
                    logger.warning(
                        "audit_line_unreadable",
                        path=str(self._path),
                        line=line_number,
                        error=str(e),
                    )
        return events

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [
            e for e in self._read_events()
            if e.correlation_id == correlation_id
        ]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._read_events()))[:limit]
