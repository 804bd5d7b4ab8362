"""
Data Models Package

This package contains all Pydantic models used by the allowance tracker.
All state owned by the ledger must conform to these schemas.
"""

from allowance_tracker.models.ledger import (
    BUCKET_ORDER,
    CATCH_UP_MARKER,
    SYSTEM_ACTOR_NAME,
    AppState,
    Balances,
    Bucket,
    CatchUpResult,
    Child,
    ChildSetup,
    Distribution,
    Goal,
    GoalCelebration,
    LedgerOperation,
    LedgerSettings,
    MissedPeriodsReport,
    MissedWeek,
    Money,
    OperationResult,
    Transaction,
    TransactionBucket,
    TransactionKind,
    TransactionQuery,
    UndoResult,
    Weekday,
)
from allowance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BUCKET_ORDER",
    "CATCH_UP_MARKER",
    "SYSTEM_ACTOR_NAME",
    "AppState",
    "Balances",
    "Bucket",
    "CatchUpResult",
    "Child",
    "ChildSetup",
    "Distribution",
    "Goal",
    "GoalCelebration",
    "LedgerOperation",
    "LedgerSettings",
    "MissedPeriodsReport",
    "MissedWeek",
    "Money",
    "OperationResult",
    "Transaction",
    "TransactionBucket",
    "TransactionKind",
    "TransactionQuery",
    "UndoResult",
    "Weekday",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
