"""
Backup-on-write State Store

Persists AppState snapshots on any KeyValueBackend with two slots:
the current snapshot and a rollback backup.

WRITE PATH:
1. Copy the current snapshot into the backup slot, unless it is
   unreadable or invalid (then the backup slot is left alone)
2. Write the new snapshot
3. Read it back and compare
If any step fails, the previous snapshot is copied back into the current
slot. Without a valid previous snapshot the untouched backup is what the
next load falls back to. If neither exists, or the copy back fails, the
error is critical: the data only lives in memory.

READ PATH:
1. Current snapshot, validated
2. On structural failure, the backup, validated (and promoted to current)
3. On failure of both, an empty state plus a DataLossError for the caller

Individual key-value writes are retried with tenacity before a step
counts as failed.
"""

from typing import Optional

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from allowance_tracker.config import get_settings
from allowance_tracker.models.ledger import AppState
from allowance_tracker.services.storage.interface import (
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
from allowance_tracker.services.storage.serialization import parse_state, serialize_state


logger = structlog.get_logger(__name__)


class StateStore(StateStorageInterface):
    """
    Snapshot persistence with a rollback slot.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        state_key: Optional[str] = None,
        backup_key: Optional[str] = None,
        write_attempts: Optional[int] = None,
        retry_wait_max_seconds: Optional[float] = None,
    ):
        settings = get_settings().storage
        self._backend = backend
        self._state_key = state_key or settings.state_key
        self._backup_key = backup_key or settings.backup_key
        self._write_attempts = write_attempts or settings.write_attempts
        self._retry_wait_max = (
            retry_wait_max_seconds
            if retry_wait_max_seconds is not None
            else settings.retry_wait_max_seconds
        )

        if self._state_key == self._backup_key:
            raise ValueError("State and backup keys must differ")

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def _read(self, key: str) -> Optional[AppState]:
        raw = self._backend.get(key)
        if raw is None:
            return None
        return parse_state(raw)

    def load(self) -> Optional[AppState]:
        return self._read(self._state_key)

    def load_backup(self) -> Optional[AppState]:
        """Load the rollback snapshot; same contract as ``load``."""
        return self._read(self._backup_key)

    def load_with_recovery(self) -> LoadResult:
        try:
            state = self.load()
        except (StructuralIntegrityError, StorageError) as primary_error:
            logger.error("state_load_failed", slot="primary", error=str(primary_error))
            return self._recover_from_backup(primary_error)

        if state is None:
            logger.info("state_not_found")
            return LoadResult(state=AppState(), source=LoadSource.EMPTY)

        logger.info("state_loaded", kids=len(state.kids), transactions=len(state.transactions))
        return LoadResult(state=state, source=LoadSource.PRIMARY)

    def _recover_from_backup(self, primary_error: Exception) -> LoadResult:
        try:
            backup = self.load_backup()
        except (StructuralIntegrityError, StorageError) as backup_error:
            logger.error("state_load_failed", slot="backup", error=str(backup_error))
            backup = None

        if backup is not None:
            # Promote the backup directly; persist() would copy the corrupt
            # current snapshot over the only good one.
            try:
                self._write(self._state_key, serialize_state(backup))
            except StorageError as e:
                logger.error("backup_promotion_failed", error=str(e))
            return LoadResult(
                state=backup,
                source=LoadSource.BACKUP,
                warning=(
                    "Your data was corrupted but has been restored from backup. "
                    "Please verify your information is correct."
                ),
            )

        data_loss = DataLossError(
            "Unable to load your saved data or its backup; starting fresh. "
            f"Cause: {primary_error}"
        )
        data_loss.__cause__ = primary_error
        return LoadResult(
            state=AppState(),
            source=LoadSource.FRESH,
            data_loss=data_loss,
        )

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def _write(self, key: str, value: str) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self._write_attempts),
            wait=wait_exponential(multiplier=0.1, max=self._retry_wait_max),
            retry=retry_if_exception_type(StorageError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                self._backend.set(key, value)

    def _usable_snapshot(self, key: str) -> Optional[str]:
        """Raw text under ``key`` if it parses as a valid snapshot, else None."""
        try:
            raw = self._backend.get(key)
            if raw is not None:
                parse_state(raw)
        except StructuralIntegrityError as e:
            logger.warning("unusable_snapshot_skipped", key=key, error=str(e))
            return None
        return raw

    def persist(self, state: AppState) -> None:
        payload = serialize_state(state)
        previous: Optional[str] = None
        current_slot_touched = False

        try:
            # A corrupt current snapshot must never overwrite the backup
            previous = self._usable_snapshot(self._state_key)
            if previous is not None:
                self._write(self._backup_key, previous)

            current_slot_touched = True
            self._write(self._state_key, payload)

            if self._backend.get(self._state_key) != payload:
                raise PersistError("Data verification failed after save")
        except StorageError as e:
            logger.error("state_save_failed", error=str(e))
            if not current_slot_touched:
                raise PersistError(
                    f"Unable to save data; the saved snapshot is unchanged. Cause: {e}"
                ) from e
            self._restore_previous(previous, e)

        logger.debug("state_saved", size=len(payload))

    def _restore_previous(self, previous: Optional[str], error: StorageError) -> None:
        """Put the prior snapshot back into the current slot, then report the failure."""
        if previous is None:
            if self._backup_survives():
                logger.warning("backup_snapshot_kept")
                raise PersistError(
                    "Unable to save data; the backup snapshot is unchanged and "
                    f"will be used on the next load. Cause: {error}"
                ) from error
            raise CriticalPersistenceError(
                "Critical error: Unable to save data and no backup available. "
                "Please export a backup immediately."
            ) from error

        try:
            self._write(self._state_key, previous)
        except StorageError as restore_error:
            logger.critical("backup_restore_failed", error=str(restore_error))
            raise CriticalPersistenceError(
                "Critical error: Unable to save data. "
                "Please export a backup immediately."
            ) from restore_error

        logger.warning("previous_state_restored")
        raise PersistError(
            f"Unable to save data; the previous snapshot was restored. Cause: {error}"
        ) from error

    def _backup_survives(self) -> bool:
        try:
            return self._usable_snapshot(self._backup_key) is not None
        except StorageError as e:
            logger.error("backup_check_failed", error=str(e))
            return False
