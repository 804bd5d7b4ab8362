"""
Core Data Models for the Allowance Ledger

These models define the schemas for everything the ledger owns:
children and their bucket balances, household settings, and the
append-only transaction log.

They are designed to:
1. Enforce type safety at runtime
2. Reject structurally invalid persisted state loudly
3. Serialize amounts as JSON numbers, dates as ISO strings
4. Keep the transaction log immutable

DESIGN DECISION: Money is a Decimal quantized to cents. It is accepted
only from numeric input (int, float, Decimal), never from strings, so a
persisted balance of "12.50" is a structural error rather than a silent
coercion.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)

from allowance_tracker.core.dates import week_range_label


CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

# Appended to the description of every catch-up allowance transaction.
CATCH_UP_MARKER = "(catch-up)"

SYSTEM_ACTOR_NAME = "System"


def _require_number(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValueError(f"Amount must be a number, got {type(value).__name__}")
    return value


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


Money = Annotated[
    Decimal,
    BeforeValidator(_require_number),
    AfterValidator(_to_cents),
    PlainSerializer(float, return_type=float, when_used="json"),
]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Bucket(str, Enum):
    """
    The three buckets a child's money is partitioned into.

    The declaration order is the rotation order used when distributing
    indivisible remainders.
    """
    SAVE = "save"
    SPEND = "spend"
    SHARE = "share"


BUCKET_ORDER: tuple[Bucket, ...] = (Bucket.SAVE, Bucket.SPEND, Bucket.SHARE)


class TransactionBucket(str, Enum):
    """Bucket a transaction is recorded against. ALL spans every bucket."""
    SAVE = "save"
    SPEND = "spend"
    SHARE = "share"
    ALL = "all"

    @classmethod
    def of(cls, bucket: Bucket) -> "TransactionBucket":
        return cls(bucket.value)


class TransactionKind(str, Enum):
    """Kinds of entries in the transaction log."""
    MANUAL_ADDITION = "manual_addition"
    DEDUCTION = "deduction"
    ALLOWANCE = "allowance"
    GOAL_COMPLETED = "goal_completed"
    BIRTHDAY = "birthday"
    PROFILE_UPDATE = "profile_update"
    UNDO_ALLOWANCE = "undo_allowance"


class Weekday(str, Enum):
    """Day of the week the allowance is paid on."""
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def number(self) -> int:
        """Weekday number as used by ``date.weekday()`` (Monday is 0)."""
        return list(Weekday).index(self)


class LedgerOperation(str, Enum):
    """Operations that produce an OperationResult."""
    SETUP = "setup"
    APPLY_ALLOWANCE = "apply_allowance"
    ADD_FUNDS = "add_funds"
    RECORD_SPENDING = "record_spending"
    SET_GOAL = "set_goal"
    REMOVE_GOAL = "remove_goal"
    UPDATE_PROFILE = "update_profile"
    SET_ALLOWANCE_DAY = "set_allowance_day"
    RECONCILE_AGES = "reconcile_ages"
    UNDO_ALLOWANCE = "undo_allowance"
    APPLY_MISSED_PERIODS = "apply_missed_periods"
    RESTORE = "restore"


# =============================================================================
# BALANCES AND DISTRIBUTIONS
# =============================================================================

class Distribution(BaseModel):
    """Whole-unit split of an allowance across the three buckets."""
    model_config = ConfigDict(frozen=True)

    save: int = Field(default=0, ge=0)
    spend: int = Field(default=0, ge=0)
    share: int = Field(default=0, ge=0)

    def get(self, bucket: Bucket) -> int:
        return getattr(self, bucket.value)

    @property
    def total(self) -> int:
        return self.save + self.spend + self.share


class Balances(BaseModel):
    """
    Per-bucket balances for one child.

    Balances are immutable values; every change produces a new instance
    and is re-validated, so a negative bucket can never be constructed.
    """
    model_config = ConfigDict(frozen=True)

    save: Money = Field(default=ZERO, ge=0)
    spend: Money = Field(default=ZERO, ge=0)
    share: Money = Field(default=ZERO, ge=0)

    def get(self, bucket: Bucket) -> Decimal:
        return getattr(self, bucket.value)

    @property
    def total(self) -> Decimal:
        return self.save + self.spend + self.share

    def _replace(self, **changes: Decimal) -> "Balances":
        return Balances.model_validate({**self.model_dump(), **changes})

    def credit(self, bucket: Bucket, amount: Decimal) -> "Balances":
        return self._replace(**{bucket.value: self.get(bucket) + amount})

    def debit(self, bucket: Bucket, amount: Decimal) -> "Balances":
        return self._replace(**{bucket.value: self.get(bucket) - amount})

    def add(self, distribution: Distribution) -> "Balances":
        return self._replace(**{
            bucket.value: self.get(bucket) + distribution.get(bucket)
            for bucket in BUCKET_ORDER
        })

    def subtract(self, distribution: Distribution) -> "Balances":
        return self._replace(**{
            bucket.value: self.get(bucket) - distribution.get(bucket)
            for bucket in BUCKET_ORDER
        })


# =============================================================================
# CHILDREN AND SETTINGS
# =============================================================================

class Goal(BaseModel):
    """
    A savings goal measured against the Save bucket.

    ``completed_at`` marks that the goal has already been celebrated.
    It is cleared only by replacing the goal.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="What the child is saving for"
    )
    target: Money = Field(
        ...,
        gt=0,
        description="Amount the Save bucket must reach"
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        description="When the goal was first reached"
    )


class Child(BaseModel):
    """
    A child tracked by the ledger.

    The ``age`` field is only a display cache. The authoritative age is
    always derived from ``birthday``.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    birthday: date
    balances: Balances = Field(default_factory=Balances)
    goal: Optional[Goal] = None
    age: Optional[int] = Field(
        default=None,
        ge=0,
        description="Cached age, reconciled against the birthday on load"
    )


class LedgerSettings(BaseModel):
    """Household-wide allowance settings."""

    allowance_day: Weekday = Weekday.SUNDAY
    last_allowance_at: Optional[datetime] = Field(
        default=None,
        description="When the most recent weekly distribution was applied"
    )
    rotation_week: int = Field(
        default=1,
        ge=1,
        le=3,
        description="Which bucket receives the first remainder unit (1-based)"
    )


# =============================================================================
# TRANSACTION LOG
# =============================================================================

class Transaction(BaseModel):
    """
    A single entry in the transaction log.

    Transactions are immutable once created. ``child_id`` is a weak
    reference; ``child_name`` is captured at creation time and stays
    authoritative for display.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime
    child_id: Optional[UUID] = Field(
        default=None,
        description="Owning child; None for system entries"
    )
    child_name: str
    bucket: TransactionBucket
    amount: Money = Field(
        ...,
        ge=0,
        description="Always non-negative; the sign is implied by kind"
    )
    description: str
    kind: TransactionKind

    @property
    def is_catch_up(self) -> bool:
        return (
            self.kind == TransactionKind.ALLOWANCE
            and CATCH_UP_MARKER in self.description
        )

    @property
    def is_system(self) -> bool:
        return self.child_id is None


class AppState(BaseModel):
    """
    Root aggregate owned by the Ledger.

    ``transactions`` is ordered newest first.
    """

    kids: list[Child] = Field(default_factory=list)
    settings: LedgerSettings = Field(default_factory=LedgerSettings)
    transactions: list[Transaction] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_unique_children(self) -> 'AppState':
        ids = [kid.id for kid in self.kids]
        if len(ids) != len(set(ids)):
            raise ValueError("Child ids must be unique")
        return self

    def find_child(self, child_id: Optional[UUID]) -> Optional[Child]:
        for kid in self.kids:
            if kid.id == child_id:
                return kid
        return None


# =============================================================================
# RECONCILIATION MODELS
# =============================================================================

class MissedWeek(BaseModel):
    """A fully elapsed 7-day window with no allowance issued."""
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @property
    def label(self) -> str:
        return week_range_label(self.start)


class MissedPeriodsReport(BaseModel):
    """Result of missed-period detection."""

    last_allowance_at: datetime
    as_of: datetime
    weeks: list[MissedWeek]
    count: int = Field(ge=1)
    per_child_weekly_total: int = Field(
        ge=0,
        description="Sum of every child's current age"
    )
    days_since: int = Field(ge=0)


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class GoalCelebration(BaseModel):
    """Signal handed to the caller when a child reaches a savings goal."""

    child_id: UUID
    child_name: str
    goal_name: str
    target: Money

    @property
    def message(self) -> str:
        return (
            f"{self.child_name} has reached their savings goal of "
            f"{self.target:.2f} for \"{self.goal_name}\"!"
        )


class OperationResult(BaseModel):
    """
    What every state-changing ledger operation returns.

    Persistence failures are reported here instead of being raised:
    the in-memory ledger already holds the new state.
    """

    operation: LedgerOperation
    correlation_id: UUID
    transactions: list[Transaction] = Field(
        default_factory=list,
        description="Transactions appended by this operation, newest first"
    )
    celebrations: list[GoalCelebration] = Field(default_factory=list)
    persisted: bool = True
    persistence_error: Optional[str] = None
    persistence_critical: bool = False


class UndoResult(OperationResult):
    """Result of undoing the most recent weekly allowance."""

    reversed_total: Money
    child_names: list[str]
    original_timestamp: datetime
    removed_transaction_ids: list[UUID]


class CatchUpResult(OperationResult):
    """Result of applying missed allowance weeks."""

    weeks_by_child: dict[UUID, int]
    rotation_steps: int = Field(ge=0)


# =============================================================================
# INPUT MODELS
# =============================================================================

class ChildSetup(BaseModel):
    """One child entered during household setup."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    birthday: date
    balances: Balances = Field(default_factory=Balances)
    goal: Optional[Goal] = None


class TransactionQuery(BaseModel):
    """Filters for browsing and exporting the transaction log."""
    model_config = ConfigDict(str_strip_whitespace=True)

    child_id: Optional[UUID] = None
    bucket: Optional[TransactionBucket] = None
    kind: Optional[TransactionKind] = None
    search: Optional[str] = Field(
        default=None,
        description="Case-insensitive match on description or child name"
    )
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    limit: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode='after')
    def validate_date_range(self) -> 'TransactionQuery':
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        return self
