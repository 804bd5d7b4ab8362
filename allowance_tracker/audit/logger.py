"""
Audit Logger

DESIGN DECISION: Every ledger operation is logged.
The audit logger:
- Always writes a structured local log line
- Forwards the event to audit storage when one is configured
- Never lets a failing audit sink abort a ledger operation
- Supports correlation IDs to group the events of one operation
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from allowance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from allowance_tracker.services.storage import AuditStorageInterface, StorageError


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure structlog on top of the stdlib root logger.

    Args:
        level: Minimum level name (DEBUG ... CRITICAL)
        json_output: JSON lines when True, console text otherwise
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))
    logging.getLogger().setLevel(level.upper())


# Sensible local logging before any explicit configuration
configure_logging()


_SEVERITY_METHODS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and parent visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("allowance_tracker.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        method = _SEVERITY_METHODS.get(event.severity, "info")
        getattr(self._logger, method)("audit_event", **event.to_log_dict())

        if self._storage:
            try:
                return self._storage.append_event(event)
            except StorageError as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_validation_failed(
        self,
        operation: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a rejected ledger request."""
        self.log(AuditEventBuilder.validation_failed(
            operation=operation,
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_persistence_failure(
        self,
        error_message: str,
        critical: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed save."""
        if critical:
            event = AuditEventBuilder.state_event(
                AuditEventType.CRITICAL_PERSISTENCE_FAILURE,
                description="Save failed and the previous snapshot could not be restored",
                severity=AuditSeverity.CRITICAL,
                error_message=error_message,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.state_event(
                AuditEventType.SAVE_FAILED,
                description="Save failed; previous snapshot kept",
                severity=AuditSeverity.ERROR,
                error_message=error_message,
                correlation_id=correlation_id,
            )
        self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of each ledger operation.
    """
    return uuid4()
