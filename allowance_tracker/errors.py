"""
Ledger errors.

Every error is raised before any state is touched; catching one means
the ledger is exactly as it was.
"""

from decimal import Decimal

from allowance_tracker.models.ledger import Bucket


class AllowanceTrackerError(Exception):
    """Base exception for the allowance tracker."""
    pass


class LedgerError(AllowanceTrackerError):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """Malformed or missing operation input."""
    pass


class ChildNotFoundError(ValidationError):
    """The requested child is not part of the household."""
    pass


class InsufficientFundsError(LedgerError):
    """A deduction exceeds the bucket balance."""

    def __init__(self, bucket: Bucket, balance: Decimal, requested: Decimal):
        self.bucket = bucket
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient balance in {bucket.value} bucket. "
            f"Current balance: {balance:.2f}, requested: {requested:.2f}"
        )


class UndoNotEligibleError(LedgerError):
    """The most recent log entries are not one complete weekly allowance."""
    pass
