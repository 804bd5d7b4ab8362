"""
Ledger commands.

Callers that prefer a single entry point build one of these and hand
it to ``Ledger.apply``. Each command maps one-to-one onto a Ledger
method.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from allowance_tracker.models.ledger import AppState, Bucket, ChildSetup, Weekday


class Command(BaseModel):
    """Base class for ledger commands."""
    model_config = ConfigDict(frozen=True)


class SetupHousehold(Command):
    children: list[ChildSetup]
    allowance_day: Optional[Weekday] = None


class ApplyAllowance(Command):
    child_id: Optional[UUID] = Field(
        default=None,
        description="Pay one child only; None pays everyone"
    )


class AddFunds(Command):
    child_id: UUID
    bucket: Bucket
    amount: Decimal
    description: Optional[str] = None


class RecordSpending(Command):
    child_id: UUID
    bucket: Bucket
    amount: Decimal
    description: Optional[str] = None


class SetGoal(Command):
    child_id: UUID
    name: str
    target: Decimal


class RemoveGoal(Command):
    child_id: UUID


class UpdateProfile(Command):
    child_id: UUID
    name: Optional[str] = None
    birthday: Optional[date] = None


class SetAllowanceDay(Command):
    allowance_day: Weekday


class ReconcileAges(Command):
    pass


class UndoLastAllowance(Command):
    pass


class ApplyMissedPeriods(Command):
    weeks_to_apply: Optional[int] = Field(
        default=None,
        ge=0,
        description="Weeks per child; None applies every detected week"
    )
    child_id: Optional[UUID] = None
    weeks_by_child: Optional[dict[UUID, int]] = Field(
        default=None,
        description="Per-child week counts; overrides weeks_to_apply"
    )


class RestoreState(Command):
    state: AppState


LedgerCommand = Union[
    SetupHousehold,
    ApplyAllowance,
    AddFunds,
    RecordSpending,
    SetGoal,
    RemoveGoal,
    UpdateProfile,
    SetAllowanceDay,
    ReconcileAges,
    UndoLastAllowance,
    ApplyMissedPeriods,
    RestoreState,
]
