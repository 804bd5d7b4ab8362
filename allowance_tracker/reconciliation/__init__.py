"""Missed-period detection and catch-up planning."""

from allowance_tracker.reconciliation.engine import (
    CatchUpEntry,
    CatchUpPlan,
    detect_missed_periods,
    is_allowance_due,
    plan_catch_up,
)

__all__ = [
    "CatchUpEntry",
    "CatchUpPlan",
    "detect_missed_periods",
    "is_allowance_due",
    "plan_catch_up",
]
