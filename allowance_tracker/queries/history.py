"""
Transaction History Queries

DESIGN DECISION: Queries are read-only projections of the log.
They never touch balances; summaries read the balance cache, history
reads the transaction log.

The log is newest first and every function here preserves that order.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from allowance_tracker.core.dates import age, to_date
from allowance_tracker.ledger.goals import goal_progress
from allowance_tracker.models.ledger import (
    ZERO,
    AppState,
    Bucket,
    Money,
    Transaction,
    TransactionQuery,
)


class ChildSummary(BaseModel):
    """One child's balances and goal progress."""

    child_id: UUID
    name: str
    age: int
    save: Money
    spend: Money
    share: Money
    total: Money
    goal_name: Optional[str] = None
    goal_target: Optional[Money] = None
    goal_progress: Optional[Decimal] = Field(
        default=None,
        description="Percent of the goal reached, capped at 100"
    )


class FamilySummary(BaseModel):
    """Household totals per bucket and per child."""

    children: list[ChildSummary] = Field(default_factory=list)
    save: Money = ZERO
    spend: Money = ZERO
    share: Money = ZERO
    total: Money = ZERO
    transaction_count: int = 0


def _matches(transaction: Transaction, query: TransactionQuery) -> bool:
    if query.child_id is not None and transaction.child_id != query.child_id:
        return False
    if query.bucket is not None and transaction.bucket != query.bucket:
        return False
    if query.kind is not None and transaction.kind != query.kind:
        return False

    day = to_date(transaction.timestamp)
    if query.date_from is not None and day < query.date_from:
        return False
    if query.date_to is not None and day > query.date_to:
        return False

    if query.search:
        needle = query.search.lower()
        haystack = f"{transaction.description} {transaction.child_name}".lower()
        if needle not in haystack:
            return False

    return True


def filter_transactions(
    transactions: Iterable[Transaction],
    query: Optional[TransactionQuery] = None,
) -> list[Transaction]:
    """Transactions matching every filter set on ``query``, newest first."""
    if query is None:
        return list(transactions)

    results = []
    for transaction in transactions:
        if _matches(transaction, query):
            results.append(transaction)
            if query.limit is not None and len(results) >= query.limit:
                break
    return results


def recent_transactions(
    transactions: Iterable[Transaction],
    limit: int = 10,
) -> list[Transaction]:
    return filter_transactions(transactions, TransactionQuery(limit=limit))


def family_summary(state: AppState, as_of: Optional[date] = None) -> FamilySummary:
    """
    Roll up balances across the household.

    ``age`` is derived from each birthday as of ``as_of`` (today by
    default), never read from the cache.
    """
    children = []
    for kid in state.kids:
        balances = kid.balances
        children.append(ChildSummary(
            child_id=kid.id,
            name=kid.name,
            age=age(kid.birthday, as_of),
            save=balances.save,
            spend=balances.spend,
            share=balances.share,
            total=balances.total,
            goal_name=kid.goal.name if kid.goal else None,
            goal_target=kid.goal.target if kid.goal else None,
            goal_progress=goal_progress(kid),
        ))

    def bucket_total(bucket: Bucket) -> Decimal:
        return sum((kid.balances.get(bucket) for kid in state.kids), ZERO)

    return FamilySummary(
        children=children,
        save=bucket_total(Bucket.SAVE),
        spend=bucket_total(Bucket.SPEND),
        share=bucket_total(Bucket.SHARE),
        total=sum((kid.balances.total for kid in state.kids), ZERO),
        transaction_count=len(state.transactions),
    )


def describe_query(query: TransactionQuery) -> str:
    """Human-readable summary of the active filters."""
    parts = ["All transactions"]
    if query.bucket:
        parts.append(f"bucket: {query.bucket.value}")
    if query.kind:
        parts.append(f"kind: {query.kind.value}")
    if query.search:
        parts.append(f"matching \"{query.search}\"")
    if query.date_from and query.date_to:
        parts.append(f"from {query.date_from:%d %b %Y} to {query.date_to:%d %b %Y}")
    elif query.date_from:
        parts.append(f"from {query.date_from:%d %b %Y}")
    elif query.date_to:
        parts.append(f"until {query.date_to:%d %b %Y}")
    return " | ".join(parts)
