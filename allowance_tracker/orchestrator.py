"""
Session Orchestrator for the Allowance Tracker

Ties storage, auditing and the ledger together and defines the
startup flow every session goes through:

1. Load the snapshot (primary, then backup, then fresh)
2. Reconcile cached ages against birthdays
3. Detect missed allowance weeks
4. Check whether today's allowance is due

DESIGN DECISION: Opening a session never pays anything. Missed weeks
and a due allowance are reported; the parent decides what to apply.
"""

from pathlib import Path
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from allowance_tracker.audit import AuditLogger, configure_logging, create_correlation_id
from allowance_tracker.config import get_settings
from allowance_tracker.ledger import Ledger
from allowance_tracker.ledger.ledger import Clock
from allowance_tracker.models.audit import (
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from allowance_tracker.models.ledger import MissedPeriodsReport, Transaction
from allowance_tracker.services.storage import (
    DataLossError,
    FileKeyValueBackend,
    JsonLinesAuditStorage,
    LoadResult,
    LoadSource,
    StateStorageInterface,
    StateStore,
)


class SessionStart(BaseModel):
    """Everything the caller needs to show after opening a session."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    ledger: Ledger
    source: LoadSource
    warning: Optional[str] = None
    data_loss: Optional[DataLossError] = None
    birthdays: list[Transaction] = []
    missed_periods: Optional[MissedPeriodsReport] = None
    allowance_due: bool = False

    @property
    def needs_setup(self) -> bool:
        return not self.ledger.kids


class LedgerSession:
    """
    Opens a ledger on top of a state store.

    Usage:
        start = LedgerSession(store, audit_logger).open()
        if start.data_loss:
            warn(start.data_loss)
        if start.missed_periods:
            offer_catch_up(start.missed_periods)
    """

    def __init__(
        self,
        store: StateStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock

    def open(self) -> SessionStart:
        correlation_id = create_correlation_id()

        loaded = self._store.load_with_recovery()
        self._audit_load(loaded, correlation_id)

        ledger = Ledger(
            state=loaded.state,
            store=self._store,
            audit_logger=self._audit_logger,
            clock=self._clock,
        )

        birthdays = ledger.reconcile_ages().transactions

        missed = ledger.missed_periods()
        if missed is not None:
            self._audit_logger.log(AuditEventBuilder.missed_periods_detected(
                week_count=missed.count,
                days_since=missed.days_since,
                correlation_id=correlation_id,
            ))

        return SessionStart(
            ledger=ledger,
            source=loaded.source,
            warning=loaded.warning,
            data_loss=loaded.data_loss,
            birthdays=birthdays,
            missed_periods=missed,
            allowance_due=ledger.is_allowance_due(),
        )

    def _audit_load(self, loaded: LoadResult, correlation_id: UUID) -> None:
        state = loaded.state
        details = {"kids": len(state.kids), "transactions": len(state.transactions)}

        if loaded.source == LoadSource.BACKUP:
            event = AuditEventBuilder.state_event(
                AuditEventType.STATE_RESTORED_FROM_BACKUP,
                description="Saved data was corrupted; restored from backup",
                severity=AuditSeverity.WARNING,
                details=details,
                correlation_id=correlation_id,
            )
        elif loaded.source == LoadSource.FRESH:
            event = AuditEventBuilder.state_event(
                AuditEventType.STATE_RESET_AFTER_DATA_LOSS,
                description="Saved data and backup unreadable; started fresh",
                severity=AuditSeverity.CRITICAL,
                error_message=str(loaded.data_loss) if loaded.data_loss else None,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.state_event(
                AuditEventType.STATE_LOADED,
                description=f"State loaded ({loaded.source.value})",
                details=details,
                correlation_id=correlation_id,
            )
        self._audit_logger.log(event)


def create_session(
    data_dir: Optional[Union[str, Path]] = None,
    clock: Optional[Clock] = None,
) -> LedgerSession:
    """
    Factory for a file-backed session configured from settings.

    Args:
        data_dir: Overrides ``ALLOWANCE_STORAGE_DATA_DIR``
        clock: Overrides the wall clock (tests)
    """
    settings = get_settings()
    storage_settings = settings.storage
    app_settings = settings.app
    configure_logging(
        app_settings.effective_log_level,
        json_output=app_settings.log_format == "json",
    )

    directory = Path(data_dir) if data_dir is not None else storage_settings.data_dir
    store = StateStore(FileKeyValueBackend(directory))
    audit_logger = AuditLogger(JsonLinesAuditStorage(directory / storage_settings.audit_log_name))

    return LedgerSession(store, audit_logger=audit_logger, clock=clock)
