"""
Reconciliation Engine

Works out which weekly allowances were missed while the tracker was
not in use and plans how to catch up on them.

DESIGN DECISION: Everything here is a pure function of the state and
an explicit ``as_of`` instant. The Ledger applies a CatchUpPlan; this
module never mutates anything.

CATCH-UP RULES:
- Each child may catch up on 0..N of the N detected weeks, oldest first
- Week ``i`` of a child's catch-up uses rotation ``rotation_week + i``
  and the child's age at the end of that week
- Every child starts from the same rotation week; the household
  rotation advances once, by the largest week count applied
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from allowance_tracker.core.dates import WEEK, age, enumerate_completed_weeks, to_date
from allowance_tracker.core.distribution import advance_rotation, distribute
from allowance_tracker.errors import ChildNotFoundError, ValidationError
from allowance_tracker.models.ledger import (
    CATCH_UP_MARKER,
    AppState,
    Distribution,
    LedgerSettings,
    MissedPeriodsReport,
    MissedWeek,
)


class CatchUpEntry(BaseModel):
    """One missed week's allowance for one child."""
    model_config = ConfigDict(frozen=True)

    child_id: UUID
    child_name: str
    week: MissedWeek
    amount: int = Field(ge=0)
    rotation_week: int = Field(ge=1, le=3)
    distribution: Distribution

    @property
    def description(self) -> str:
        return f"Weekly allowance for {self.week.label} {CATCH_UP_MARKER}"


class CatchUpPlan(BaseModel):
    """Every entry a catch-up will apply, in household then week order."""

    entries: list[CatchUpEntry] = Field(default_factory=list)
    weeks_by_child: dict[UUID, int] = Field(default_factory=dict)
    rotation_steps: int = Field(default=0, ge=0)


def detect_missed_periods(
    state: AppState,
    as_of: datetime,
) -> Optional[MissedPeriodsReport]:
    """
    Report the fully elapsed weeks since the last distribution.

    Returns None on first run (no distribution yet) or when nothing
    is missing.
    """
    last = state.settings.last_allowance_at
    if last is None:
        return None

    weeks = [
        MissedWeek(start=start, end=end)
        for start, end in enumerate_completed_weeks(last, as_of)
    ]
    if not weeks:
        return None

    return MissedPeriodsReport(
        last_allowance_at=last,
        as_of=as_of,
        weeks=weeks,
        count=len(weeks),
        per_child_weekly_total=sum(age(kid.birthday, as_of) for kid in state.kids),
        days_since=(to_date(as_of) - to_date(last)).days,
    )


def plan_catch_up(
    state: AppState,
    report: MissedPeriodsReport,
    weeks_by_child: dict[UUID, int],
) -> CatchUpPlan:
    """
    Build the catch-up entries for the requested week counts.

    Children missing from ``weeks_by_child`` catch up on nothing.

    Raises:
        ChildNotFoundError: If a requested child is not in the household
        ValidationError: If a week count is outside 0..report.count
    """
    known = {kid.id for kid in state.kids}
    for child_id, weeks in weeks_by_child.items():
        if child_id not in known:
            raise ChildNotFoundError(f"Child not found: {child_id}")
        if isinstance(weeks, bool) or not isinstance(weeks, int):
            raise ValidationError(f"Week count must be a whole number, got {weeks!r}")
        if not 0 <= weeks <= report.count:
            raise ValidationError(
                f"Week count must be between 0 and {report.count}, got {weeks}"
            )

    base_rotation = state.settings.rotation_week
    entries = []
    applied = {}

    for kid in state.kids:
        weeks = weeks_by_child.get(kid.id, 0)
        applied[kid.id] = weeks
        for index in range(weeks):
            week = report.weeks[index]
            amount = age(kid.birthday, week.end)
            rotation = advance_rotation(base_rotation, index)
            entries.append(CatchUpEntry(
                child_id=kid.id,
                child_name=kid.name,
                week=week,
                amount=amount,
                rotation_week=rotation,
                distribution=distribute(amount, rotation),
            ))

    return CatchUpPlan(
        entries=entries,
        weeks_by_child=applied,
        rotation_steps=max(applied.values(), default=0),
    )


def is_allowance_due(settings: LedgerSettings, as_of: datetime) -> bool:
    """
    True when a regular weekly allowance should be paid on ``as_of``.

    At least a week must have passed since the last distribution and
    ``as_of`` must fall on the allowance day. Never due on first run.
    """
    if settings.last_allowance_at is None:
        return False
    elapsed = to_date(as_of) - to_date(settings.last_allowance_at)
    return elapsed >= WEEK and to_date(as_of).weekday() == settings.allowance_day.number
