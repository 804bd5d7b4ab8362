"""
Audit Models for the Allowance Tracker

Every ledger operation and every persistence step emits an audit
event. The transaction log records what happened to the money; the
audit trail records what happened to the system (rejected requests,
failed saves, recoveries from backup).

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Allowance
    ALLOWANCE_APPLIED = "allowance_applied"
    ALLOWANCE_UNDONE = "allowance_undone"
    UNDO_REJECTED = "undo_rejected"

    # Manual money movement
    FUNDS_ADDED = "funds_added"
    SPENDING_RECORDED = "spending_recorded"
    SPENDING_REJECTED = "spending_rejected"

    # Goals
    GOAL_SET = "goal_set"
    GOAL_REMOVED = "goal_removed"
    GOAL_COMPLETED = "goal_completed"

    # Household
    HOUSEHOLD_SETUP = "household_setup"
    PROFILE_UPDATED = "profile_updated"
    BIRTHDAY_RECORDED = "birthday_recorded"
    AGE_CACHE_CORRECTED = "age_cache_corrected"
    ALLOWANCE_DAY_CHANGED = "allowance_day_changed"

    # Reconciliation
    MISSED_PERIODS_DETECTED = "missed_periods_detected"
    CATCH_UP_APPLIED = "catch_up_applied"

    # Persistence
    STATE_LOADED = "state_loaded"
    STATE_RESTORED_FROM_BACKUP = "state_restored_from_backup"
    STATE_RESET_AFTER_DATA_LOSS = "state_reset_after_data_loss"
    STATE_IMPORTED = "state_imported"
    SAVE_FAILED = "save_failed"
    CRITICAL_PERSISTENCE_FAILURE = "critical_persistence_failure"

    # Input problems
    VALIDATION_FAILED = "validation_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'child', 'household', 'state')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by every event of one ledger operation"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a parent's request?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json_line(self) -> str:
        """Serialize as one line of a JSON Lines audit file."""
        return json.dumps(self.to_log_dict(), default=str)


def _money(amount: Decimal) -> str:
    return f"{amount:.2f}"


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.allowance_applied(children, total, rotation, correlation_id)
        event = AuditEventBuilder.spending_rejected(child_id, "spend", balance, amount, correlation_id)
    """

    @staticmethod
    def household_setup(
        child_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOUSEHOLD_SETUP,
            entity_type="household",
            correlation_id=correlation_id,
            description=f"Household set up with {child_count} children",
            details={"child_count": child_count},
            is_user_action=True,
        )

    @staticmethod
    def allowance_applied(
        child_names: list[str],
        total: int,
        rotation_week: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOWANCE_APPLIED,
            entity_type="household",
            correlation_id=correlation_id,
            description=f"Weekly allowance of {total} paid to {len(child_names)} children",
            details={
                "children": child_names,
                "total": total,
                "rotation_week": rotation_week,
            },
            is_user_action=True,
        )

    @staticmethod
    def funds_added(
        child_id: UUID,
        bucket: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FUNDS_ADDED,
            entity_type="child",
            entity_id=child_id,
            correlation_id=correlation_id,
            description=f"Added {_money(amount)} to {bucket}",
            details={"bucket": bucket, "amount": _money(amount)},
            is_user_action=True,
        )

    @staticmethod
    def spending_recorded(
        child_id: UUID,
        bucket: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPENDING_RECORDED,
            entity_type="child",
            entity_id=child_id,
            correlation_id=correlation_id,
            description=f"Deducted {_money(amount)} from {bucket}",
            details={"bucket": bucket, "amount": _money(amount)},
            is_user_action=True,
        )

    @staticmethod
    def spending_rejected(
        child_id: UUID,
        bucket: str,
        balance: Decimal,
        requested: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPENDING_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="child",
            entity_id=child_id,
            correlation_id=correlation_id,
            description=f"Spending of {_money(requested)} rejected: {bucket} holds {_money(balance)}",
            details={
                "bucket": bucket,
                "balance": _money(balance),
                "requested": _money(requested),
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_changed(
        child_id: UUID,
        goal_name: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        if goal_name is None:
            return AuditEvent(
                event_type=AuditEventType.GOAL_REMOVED,
                entity_type="child",
                entity_id=child_id,
                correlation_id=correlation_id,
                description="Savings goal removed",
                is_user_action=True,
            )
        return AuditEvent(
            event_type=AuditEventType.GOAL_SET,
            entity_type="child",
            entity_id=child_id,
            correlation_id=correlation_id,
            description=f"Savings goal set: {goal_name}",
            details={"goal": goal_name},
            is_user_action=True,
        )

    @staticmethod
    def goal_completed(
        child_id: UUID,
        goal_name: str,
        target: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_COMPLETED,
            entity_type="child",
            entity_id=child_id,
            correlation_id=correlation_id,
            description=f"Savings goal reached: {goal_name}",
            details={"goal": goal_name, "target": _money(target)},
        )

    @staticmethod
    def allowance_undone(
        child_names: list[str],
        total: Decimal,
        rotation_week: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOWANCE_UNDONE,
            entity_type="household",
            correlation_id=correlation_id,
            description=f"Weekly allowance of {_money(total)} reversed",
            details={
                "children": child_names,
                "total": _money(total),
                "rotation_week": rotation_week,
            },
            is_user_action=True,
        )

    @staticmethod
    def undo_rejected(
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNDO_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="household",
            correlation_id=correlation_id,
            description="Undo of last allowance rejected",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        operation: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"{operation} rejected",
            error_message=reason,
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def missed_periods_detected(
        week_count: int,
        days_since: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MISSED_PERIODS_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="household",
            correlation_id=correlation_id,
            description=f"{week_count} missed allowance weeks detected",
            details={"week_count": week_count, "days_since": days_since},
        )

    @staticmethod
    def catch_up_applied(
        weeks_by_child: dict[str, int],
        rotation_steps: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATCH_UP_APPLIED,
            entity_type="household",
            correlation_id=correlation_id,
            description=f"Caught up {sum(weeks_by_child.values())} missed allowance weeks",
            details={
                "weeks_by_child": weeks_by_child,
                "rotation_steps": rotation_steps,
            },
            is_user_action=True,
        )

    @staticmethod
    def child_event(
        event_type: AuditEventType,
        child_id: UUID,
        description: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="child",
            entity_id=child_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def state_event(
        event_type: AuditEventType,
        description: str,
        severity: AuditSeverity = AuditSeverity.INFO,
        error_message: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="state",
            correlation_id=correlation_id,
            description=description,
            error_message=error_message,
            details=details or {},
        )
