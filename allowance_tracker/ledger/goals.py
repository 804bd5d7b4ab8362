"""
Savings goal tracking.

A goal is reached when the Save bucket is at or above its target.
Reaching it logs a ``goal_completed`` transaction and produces a
celebration, but touches neither the balance nor the goal itself
beyond stamping ``completed_at``. A stamped goal is never celebrated
again; replacing the goal starts over.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from allowance_tracker.models.ledger import (
    Child,
    GoalCelebration,
    Transaction,
    TransactionBucket,
    TransactionKind,
)


def check_goal_completion(
    child: Child,
    now: datetime,
) -> Optional[tuple[Transaction, GoalCelebration]]:
    """
    Detect a newly reached goal and stamp it as celebrated.

    Call right after any operation that increases a balance.

    Returns:
        The ``goal_completed`` transaction and the celebration, or None
    """
    goal = child.goal
    if goal is None or goal.completed_at is not None:
        return None
    if child.balances.save < goal.target:
        return None

    child.goal = goal.model_copy(update={"completed_at": now})

    transaction = Transaction(
        timestamp=now,
        child_id=child.id,
        child_name=child.name,
        bucket=TransactionBucket.SAVE,
        amount=goal.target,
        description=f"Goal completed: {goal.name}",
        kind=TransactionKind.GOAL_COMPLETED,
    )
    celebration = GoalCelebration(
        child_id=child.id,
        child_name=child.name,
        goal_name=goal.name,
        target=goal.target,
    )
    return transaction, celebration


def goal_progress(child: Child) -> Optional[Decimal]:
    """Percentage of the goal reached (0-100), or None without a goal."""
    if child.goal is None:
        return None
    ratio = child.balances.save / child.goal.target * 100
    return min(ratio, Decimal(100)).quantize(Decimal("0.1"))
