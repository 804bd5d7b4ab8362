"""The allowance ledger, its commands, and goal tracking."""

from allowance_tracker.ledger import commands
from allowance_tracker.ledger.commands import (
    AddFunds,
    ApplyAllowance,
    ApplyMissedPeriods,
    Command,
    LedgerCommand,
    ReconcileAges,
    RecordSpending,
    RemoveGoal,
    RestoreState,
    SetAllowanceDay,
    SetGoal,
    SetupHousehold,
    UndoLastAllowance,
    UpdateProfile,
)
from allowance_tracker.ledger.goals import check_goal_completion, goal_progress
from allowance_tracker.ledger.ledger import Ledger

__all__ = [
    "Ledger",
    "check_goal_completion",
    "goal_progress",
    "commands",
    # Commands
    "AddFunds",
    "ApplyAllowance",
    "ApplyMissedPeriods",
    "Command",
    "LedgerCommand",
    "ReconcileAges",
    "RecordSpending",
    "RemoveGoal",
    "RestoreState",
    "SetAllowanceDay",
    "SetGoal",
    "SetupHousehold",
    "UndoLastAllowance",
    "UpdateProfile",
]
