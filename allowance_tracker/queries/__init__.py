"""Read-only projections of the transaction log."""

from allowance_tracker.queries.history import (
    ChildSummary,
    FamilySummary,
    describe_query,
    family_summary,
    filter_transactions,
    recent_transactions,
)

__all__ = [
    "ChildSummary",
    "FamilySummary",
    "describe_query",
    "family_summary",
    "filter_transactions",
    "recent_transactions",
]
