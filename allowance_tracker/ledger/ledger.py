"""
The Ledger

Owns the household's AppState and is the only thing allowed to change
it. Every state-changing operation follows the same sequence:

1. Validate the request (raise before touching anything)
2. Compute the new balances off to the side
3. Mutate balances, append transactions (newest first), update settings
4. Persist through the state store and notify subscribers

DESIGN DECISION: The in-memory ledger is always the most current truth.
A failed save never undoes an operation; it is reported on the
returned OperationResult so the caller can warn the parent.

DESIGN DECISION: Time comes from an injected clock. Each operation
reads it once, so every transaction of one operation shares a
timestamp.
"""

from contextlib import contextmanager
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Iterable, Iterator, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from allowance_tracker.audit import AuditLogger, create_correlation_id
from allowance_tracker.config import get_settings
from allowance_tracker.core.dates import age, next_occurrence, to_date
from allowance_tracker.core.distribution import (
    advance_rotation,
    distribute,
    previous_rotation,
)
from allowance_tracker.errors import (
    ChildNotFoundError,
    InsufficientFundsError,
    UndoNotEligibleError,
    ValidationError,
)
from allowance_tracker.ledger import commands
from allowance_tracker.ledger.goals import check_goal_completion
from allowance_tracker.models.audit import (
    AuditEventBuilder,
    AuditEventType,
)
from allowance_tracker.models.ledger import (
    CENTS,
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
    OperationResult,
    Transaction,
    TransactionBucket,
    TransactionKind,
    UndoResult,
    Weekday,
)
from allowance_tracker.reconciliation import (
    CatchUpPlan,
    detect_missed_periods,
    is_allowance_due,
    plan_catch_up,
)
from allowance_tracker.services.storage import (
    CriticalPersistenceError,
    PersistError,
    StateStorageInterface,
)


logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]
Subscriber = Callable[[OperationResult], None]


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _coerce_amount(amount: Any) -> Decimal:
    """Validate a user-entered amount and round it to cents."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        raise ValidationError("Please enter a valid amount")
    value = Decimal(str(amount)) if isinstance(amount, float) else Decimal(amount)
    if not value.is_finite():
        raise ValidationError("Please enter a valid amount")
    value = value.quantize(CENTS, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise ValidationError("Amount must be greater than zero")
    return value


def _coerce_bucket(bucket: Union[Bucket, str]) -> Bucket:
    try:
        return Bucket(bucket)
    except ValueError:
        raise ValidationError(f"Unknown bucket: {bucket!r}") from None


def _coerce_text(value: Optional[str], message: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(message)
    return text


class Ledger:
    """
    Allowance ledger for one household.

    Usage:
        ledger = Ledger(store=StateStore(backend), clock=lambda: fixed_now)
        ledger.setup([ChildSetup(name="Ada", birthday=date(2015, 3, 1))])
        result = ledger.apply_allowance()
        if not result.persisted:
            warn(result.persistence_error)
    """

    def __init__(
        self,
        state: Optional[AppState] = None,
        store: Optional[StateStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
        max_child_age: Optional[int] = None,
        currency_symbol: Optional[str] = None,
    ):
        schedule = get_settings().schedule
        self._state = state.model_copy(deep=True) if state is not None else AppState()
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or _local_now
        self._max_child_age = max_child_age if max_child_age is not None else schedule.max_child_age
        self._currency = currency_symbol if currency_symbol is not None else schedule.currency_symbol
        self._default_day = schedule.default_allowance_day
        self._subscribers: list[Subscriber] = []

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        """Read-only snapshot; changing it does not affect the ledger."""
        return self._state.model_copy(deep=True)

    @property
    def kids(self) -> list[Child]:
        return [kid.model_copy(deep=True) for kid in self._state.kids]

    @property
    def settings(self) -> LedgerSettings:
        return self._state.settings.model_copy()

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._state.transactions)

    def now(self) -> datetime:
        return self._clock()

    def get_child(self, child_id: UUID) -> Child:
        return self._require_child(child_id).model_copy(deep=True)

    def child_age(self, child_id: UUID, as_of: Optional[datetime] = None) -> int:
        """Age derived from the birthday; never the cached field."""
        return age(self._require_child(child_id).birthday, as_of or self.now())

    def preview_allowance(self, as_of: Optional[datetime] = None) -> dict[UUID, Distribution]:
        """What ``apply_allowance`` would pay each child, without paying it."""
        when = as_of or self.now()
        rotation = self._state.settings.rotation_week
        return {
            kid.id: distribute(age(kid.birthday, when), rotation)
            for kid in self._state.kids
        }

    def next_allowance_date(self, as_of: Optional[datetime] = None) -> date:
        return next_occurrence(self._state.settings.allowance_day.number, as_of or self.now())

    def missed_periods(self, as_of: Optional[datetime] = None) -> Optional[MissedPeriodsReport]:
        return detect_missed_periods(self._state, as_of or self.now())

    def is_allowance_due(self, as_of: Optional[datetime] = None) -> bool:
        return is_allowance_due(self._state.settings, as_of or self.now())

    def can_undo(self) -> bool:
        try:
            self._undo_block()
        except UndoNotEligibleError:
            return False
        return True

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for every OperationResult.

        Callbacks run after the operation is applied and saved. An
        exception from a callback is logged and does not reach the caller.

        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Household
    # -------------------------------------------------------------------------

    def setup(
        self,
        children: Iterable[Union[ChildSetup, dict]],
        allowance_day: Optional[Union[Weekday, str]] = None,
    ) -> OperationResult:
        """
        Create the household. Replaces any existing children, settings
        and history.
        """
        correlation_id = create_correlation_id()
        now = self.now()

        with self._validating(LedgerOperation.SETUP, correlation_id):
            entries = self._parse_children(children, to_date(now))
            day = self._coerce_weekday(allowance_day) if allowance_day is not None else self._default_day

        kids = [
            Child(
                name=entry.name,
                birthday=entry.birthday,
                balances=entry.balances,
                goal=entry.goal,
                age=age(entry.birthday, now),
            )
            for entry in entries
        ]
        self._state = AppState(kids=kids, settings=LedgerSettings(allowance_day=day))

        self._audit.log(AuditEventBuilder.household_setup(len(kids), correlation_id))
        return self._commit(OperationResult(
            operation=LedgerOperation.SETUP,
            correlation_id=correlation_id,
        ))

    def _parse_children(
        self,
        children: Iterable[Union[ChildSetup, dict]],
        today: date,
    ) -> list[ChildSetup]:
        entries = []
        for child in children:
            try:
                entry = child if isinstance(child, ChildSetup) else ChildSetup.model_validate(child)
            except PydanticValidationError as e:
                raise ValidationError(
                    f"Please enter valid information for all children: {e.errors()[0]['msg']}"
                ) from e
            if entry.birthday > today:
                raise ValidationError(f"Birthday for {entry.name} cannot be in the future")
            entries.append(entry)
        if not entries:
            raise ValidationError("Please add at least one child")
        return entries

    def set_allowance_day(self, allowance_day: Union[Weekday, str]) -> OperationResult:
        correlation_id = create_correlation_id()
        with self._validating(LedgerOperation.SET_ALLOWANCE_DAY, correlation_id):
            day = self._coerce_weekday(allowance_day)

        previous = self._state.settings.allowance_day
        self._state.settings.allowance_day = day

        self._audit.log(AuditEventBuilder.state_event(
            AuditEventType.ALLOWANCE_DAY_CHANGED,
            description=f"Allowance day changed from {previous.value} to {day.value}",
            details={"previous": previous.value, "allowance_day": day.value},
            correlation_id=correlation_id,
        ))
        return self._commit(OperationResult(
            operation=LedgerOperation.SET_ALLOWANCE_DAY,
            correlation_id=correlation_id,
        ))

    def update_profile(
        self,
        child_id: UUID,
        name: Optional[str] = None,
        birthday: Optional[date] = None,
    ) -> OperationResult:
        """
        Edit a child's name and/or birthday.

        Logs one ``profile_update`` transaction listing the changes, or
        nothing when the values are unchanged.
        """
        correlation_id = create_correlation_id()
        now = self.now()
        today = to_date(now)

        with self._validating(LedgerOperation.UPDATE_PROFILE, correlation_id):
            kid = self._require_child(child_id)
            new_name = kid.name if name is None else _coerce_text(name, "Please enter a name")
            new_birthday = kid.birthday if birthday is None else birthday
            if not isinstance(new_birthday, date) or isinstance(new_birthday, datetime):
                raise ValidationError("Please enter a valid birthday")
            if new_birthday > today:
                raise ValidationError("Birthday cannot be in the future")
            new_age = age(new_birthday, today)
            if new_age > self._max_child_age:
                raise ValidationError(
                    f"Age must be {self._max_child_age} or younger, got {new_age}"
                )

        old_age = age(kid.birthday, today)
        changes = []
        if new_name != kid.name:
            changes.append(f"Name: {kid.name} -> {new_name}")
        if new_birthday != kid.birthday:
            changes.append(f"Birthday: {kid.birthday.isoformat()} -> {new_birthday.isoformat()}")
            if new_age != old_age:
                changes.append(
                    f"Age: {old_age} -> {new_age} "
                    f"(Allowance: {self._currency}{old_age}.00 -> {self._currency}{new_age}.00)"
                )

        result = OperationResult(
            operation=LedgerOperation.UPDATE_PROFILE,
            correlation_id=correlation_id,
        )
        if not changes:
            return result

        kid.name = new_name
        kid.birthday = new_birthday
        kid.age = new_age

        transaction = Transaction(
            timestamp=now,
            child_id=kid.id,
            child_name=kid.name,
            bucket=TransactionBucket.ALL,
            amount=0,
            description="Profile updated. " + "; ".join(changes),
            kind=TransactionKind.PROFILE_UPDATE,
        )
        self._prepend([transaction])
        result.transactions = [transaction]

        self._audit.log(AuditEventBuilder.child_event(
            AuditEventType.PROFILE_UPDATED,
            child_id=kid.id,
            description="Profile updated",
            correlation_id=correlation_id,
            details={"changes": changes},
        ))
        return self._commit(result)

    def reconcile_ages(self, as_of: Optional[datetime] = None) -> OperationResult:
        """
        Bring every cached age in line with the birthday.

        A derived age above the cached one is a birthday and gets a
        ``birthday`` transaction. A missing or too-high cache is fixed
        silently.
        """
        correlation_id = create_correlation_id()
        now = self.now()
        when = as_of or now

        created = []
        changed = False
        for kid in self._state.kids:
            derived = age(kid.birthday, when)
            if kid.age == derived:
                continue
            changed = True
            if kid.age is not None and derived > kid.age:
                created.append(Transaction(
                    timestamp=now,
                    child_id=kid.id,
                    child_name=kid.name,
                    bucket=TransactionBucket.ALL,
                    amount=0,
                    description=(
                        f"Happy Birthday! Now {derived} years old. "
                        f"Weekly allowance updated to {self._currency}{derived}.00"
                    ),
                    kind=TransactionKind.BIRTHDAY,
                ))
                event_type = AuditEventType.BIRTHDAY_RECORDED
            else:
                event_type = AuditEventType.AGE_CACHE_CORRECTED
            self._audit.log(AuditEventBuilder.child_event(
                event_type,
                child_id=kid.id,
                description=f"Age {kid.age} -> {derived}",
                correlation_id=correlation_id,
                details={"cached": kid.age, "derived": derived},
            ))
            kid.age = derived

        self._prepend(created)
        return self._commit(
            OperationResult(
                operation=LedgerOperation.RECONCILE_AGES,
                correlation_id=correlation_id,
                transactions=list(reversed(created)),
            ),
            persist=changed,
        )

    # -------------------------------------------------------------------------
    # Money movement
    # -------------------------------------------------------------------------

    def apply_allowance(self, child_id: Optional[UUID] = None) -> OperationResult:
        """
        Pay the weekly allowance (one unit per year of age).

        Pays every child, or only ``child_id``. Either way the rotation
        week advances by one and the distribution time becomes now.
        """
        correlation_id = create_correlation_id()
        now = self.now()

        with self._validating(LedgerOperation.APPLY_ALLOWANCE, correlation_id):
            if child_id is not None:
                recipients = [self._require_child(child_id)]
            else:
                recipients = list(self._state.kids)
            if not recipients:
                raise ValidationError("There are no children to pay")

        settings = self._state.settings
        rotation = settings.rotation_week
        paid = []
        for kid in recipients:
            amount = age(kid.birthday, now)
            paid.append((kid, amount, kid.balances.add(distribute(amount, rotation))))

        created = []
        celebrations = []
        for kid, amount, balances in paid:
            kid.balances = balances
            created.append(Transaction(
                timestamp=now,
                child_id=kid.id,
                child_name=kid.name,
                bucket=TransactionBucket.ALL,
                amount=amount,
                description="Weekly allowance",
                kind=TransactionKind.ALLOWANCE,
            ))
            self._check_goal(kid, now, correlation_id, created, celebrations)

        settings.rotation_week = advance_rotation(rotation)
        settings.last_allowance_at = now
        self._prepend(created)

        self._audit.log(AuditEventBuilder.allowance_applied(
            child_names=[kid.name for kid, _, _ in paid],
            total=sum(amount for _, amount, _ in paid),
            rotation_week=rotation,
            correlation_id=correlation_id,
        ))
        return self._commit(OperationResult(
            operation=LedgerOperation.APPLY_ALLOWANCE,
            correlation_id=correlation_id,
            transactions=list(reversed(created)),
            celebrations=celebrations,
        ))

    def add_funds(
        self,
        child_id: UUID,
        bucket: Union[Bucket, str],
        amount: Any,
        description: Optional[str] = None,
    ) -> OperationResult:
        correlation_id = create_correlation_id()
        now = self.now()

        with self._validating(LedgerOperation.ADD_FUNDS, correlation_id):
            kid = self._require_child(child_id)
            bucket = _coerce_bucket(bucket)
            value = _coerce_amount(amount)

        kid.balances = kid.balances.credit(bucket, value)
        created = [Transaction(
            timestamp=now,
            child_id=kid.id,
            child_name=kid.name,
            bucket=TransactionBucket.of(bucket),
            amount=value,
            description=(description or "").strip() or "Money added",
            kind=TransactionKind.MANUAL_ADDITION,
        )]
        celebrations = []
        self._check_goal(kid, now, correlation_id, created, celebrations)
        self._prepend(created)

        self._audit.log(AuditEventBuilder.funds_added(kid.id, bucket.value, value, correlation_id))
        return self._commit(OperationResult(
            operation=LedgerOperation.ADD_FUNDS,
            correlation_id=correlation_id,
            transactions=list(reversed(created)),
            celebrations=celebrations,
        ))

    def record_spending(
        self,
        child_id: UUID,
        bucket: Union[Bucket, str],
        amount: Any,
        description: Optional[str] = None,
    ) -> OperationResult:
        """
        Deduct from one bucket.

        Raises:
            InsufficientFundsError: If the bucket holds less than ``amount``
        """
        correlation_id = create_correlation_id()
        now = self.now()

        with self._validating(LedgerOperation.RECORD_SPENDING, correlation_id):
            kid = self._require_child(child_id)
            bucket = _coerce_bucket(bucket)
            value = _coerce_amount(amount)

        balance = kid.balances.get(bucket)
        if balance < value:
            self._audit.log(AuditEventBuilder.spending_rejected(
                kid.id, bucket.value, balance, value, correlation_id
            ))
            raise InsufficientFundsError(bucket, balance, value)

        kid.balances = kid.balances.debit(bucket, value)
        transaction = Transaction(
            timestamp=now,
            child_id=kid.id,
            child_name=kid.name,
            bucket=TransactionBucket.of(bucket),
            amount=value,
            description=(description or "").strip() or "No description",
            kind=TransactionKind.DEDUCTION,
        )
        self._prepend([transaction])

        self._audit.log(AuditEventBuilder.spending_recorded(kid.id, bucket.value, value, correlation_id))
        return self._commit(OperationResult(
            operation=LedgerOperation.RECORD_SPENDING,
            correlation_id=correlation_id,
            transactions=[transaction],
        ))

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    def set_goal(self, child_id: UUID, name: str, target: Any) -> OperationResult:
        """Set or replace a savings goal. Replacing resets its celebration."""
        correlation_id = create_correlation_id()
        with self._validating(LedgerOperation.SET_GOAL, correlation_id):
            kid = self._require_child(child_id)
            goal = Goal(
                name=_coerce_text(name, "Please enter a goal name"),
                target=_coerce_amount(target),
            )

        kid.goal = goal
        self._audit.log(AuditEventBuilder.goal_changed(kid.id, goal.name, correlation_id))
        return self._commit(OperationResult(
            operation=LedgerOperation.SET_GOAL,
            correlation_id=correlation_id,
        ))

    def remove_goal(self, child_id: UUID) -> OperationResult:
        correlation_id = create_correlation_id()
        with self._validating(LedgerOperation.REMOVE_GOAL, correlation_id):
            kid = self._require_child(child_id)

        kid.goal = None
        self._audit.log(AuditEventBuilder.goal_changed(kid.id, None, correlation_id))
        return self._commit(OperationResult(
            operation=LedgerOperation.REMOVE_GOAL,
            correlation_id=correlation_id,
        ))

    def _check_goal(
        self,
        kid: Child,
        now: datetime,
        correlation_id: UUID,
        created: list[Transaction],
        celebrations: list[GoalCelebration],
    ) -> None:
        completion = check_goal_completion(kid, now)
        if completion is None:
            return
        transaction, celebration = completion
        created.append(transaction)
        celebrations.append(celebration)
        self._audit.log(AuditEventBuilder.goal_completed(
            kid.id, celebration.goal_name, celebration.target, correlation_id
        ))

    # -------------------------------------------------------------------------
    # Undo
    # -------------------------------------------------------------------------

    def _undo_block(self) -> list[Transaction]:
        """
        The newest log entries if they form one complete weekly allowance.

        That is one non-catch-up allowance per child, all from the same
        distribution, with nothing newer in between.
        """
        kid_count = len(self._state.kids)
        if kid_count == 0:
            raise UndoNotEligibleError("There are no children in the household")

        block: list[Transaction] = []
        for transaction in self._state.transactions:
            if transaction.kind != TransactionKind.ALLOWANCE or transaction.is_catch_up:
                break
            if block and transaction.timestamp != block[0].timestamp:
                break
            if any(entry.child_id == transaction.child_id for entry in block):
                break
            block.append(transaction)
            if len(block) == kid_count:
                break

        if len(block) != kid_count:
            raise UndoNotEligibleError(
                "The most recent activity is not a weekly allowance for every child"
            )
        for transaction in block:
            if self._state.find_child(transaction.child_id) is None:
                raise UndoNotEligibleError(
                    f"Allowance belongs to a child no longer in the household: "
                    f"{transaction.child_name}"
                )
            if transaction.amount != transaction.amount.to_integral_value():
                raise UndoNotEligibleError("Allowance amount is not a whole number")
        return block

    def undo_last_allowance(self) -> UndoResult:
        """
        Reverse the most recent weekly allowance exactly.

        Raises:
            UndoNotEligibleError: If the newest entries are not one
                complete allowance; nothing changes
        """
        correlation_id = create_correlation_id()
        now = self.now()
        settings = self._state.settings

        try:
            block = self._undo_block()
            rotation = previous_rotation(settings.rotation_week)
            reversed_balances = {}
            for transaction in block:
                kid = self._state.find_child(transaction.child_id)
                distribution = distribute(int(transaction.amount), rotation)
                try:
                    reversed_balances[kid.id] = kid.balances.subtract(distribution)
                except PydanticValidationError as e:
                    raise UndoNotEligibleError(
                        f"{kid.name} no longer holds the allowance being undone"
                    ) from e
        except UndoNotEligibleError as e:
            self._audit.log(AuditEventBuilder.undo_rejected(str(e), correlation_id))
            raise

        for kid in self._state.kids:
            if kid.id in reversed_balances:
                kid.balances = reversed_balances[kid.id]

        removed_ids = {transaction.id for transaction in block}
        remaining = [t for t in self._state.transactions if t.id not in removed_ids]
        settings.rotation_week = rotation
        settings.last_allowance_at = next(
            (t.timestamp for t in remaining if t.kind == TransactionKind.ALLOWANCE),
            None,
        )

        total = sum((t.amount for t in block), Decimal(0))
        child_names = [t.child_name for t in block]
        undo_transaction = Transaction(
            timestamp=now,
            child_id=None,
            child_name=SYSTEM_ACTOR_NAME,
            bucket=TransactionBucket.ALL,
            amount=total,
            description=(
                f"Undid weekly allowance of {self._currency}{total:.2f} "
                f"for {', '.join(child_names)}"
            ),
            kind=TransactionKind.UNDO_ALLOWANCE,
        )
        self._state.transactions = [undo_transaction] + remaining

        self._audit.log(AuditEventBuilder.allowance_undone(
            child_names, total, rotation, correlation_id
        ))
        return self._commit(UndoResult(
            operation=LedgerOperation.UNDO_ALLOWANCE,
            correlation_id=correlation_id,
            transactions=[undo_transaction],
            reversed_total=total,
            child_names=child_names,
            original_timestamp=block[0].timestamp,
            removed_transaction_ids=[t.id for t in block],
        ))

    # -------------------------------------------------------------------------
    # Catch-up
    # -------------------------------------------------------------------------

    def apply_missed_periods(
        self,
        weeks_to_apply: Optional[int] = None,
        child_id: Optional[UUID] = None,
    ) -> CatchUpResult:
        """
        Catch up on missed weeks, oldest first.

        ``weeks_to_apply`` defaults to every detected week. With
        ``child_id`` only that child is paid; the others get nothing.
        """
        correlation_id = create_correlation_id()
        now = self.now()

        with self._validating(LedgerOperation.APPLY_MISSED_PERIODS, correlation_id):
            report = self._require_missed_periods(now)
            weeks = report.count if weeks_to_apply is None else weeks_to_apply
            if child_id is not None:
                self._require_child(child_id)
                weeks_by_child = {child_id: weeks}
            else:
                weeks_by_child = {kid.id: weeks for kid in self._state.kids}
            plan = plan_catch_up(self._state, report, weeks_by_child)

        return self._apply_catch_up(plan, now, correlation_id)

    def apply_selected_missed_periods(self, weeks_by_child: dict[UUID, int]) -> CatchUpResult:
        """Catch up a different number of weeks for each child."""
        correlation_id = create_correlation_id()
        now = self.now()

        with self._validating(LedgerOperation.APPLY_MISSED_PERIODS, correlation_id):
            report = self._require_missed_periods(now)
            plan = plan_catch_up(self._state, report, dict(weeks_by_child))

        return self._apply_catch_up(plan, now, correlation_id)

    def _require_missed_periods(self, now: datetime) -> MissedPeriodsReport:
        report = detect_missed_periods(self._state, now)
        if report is None:
            raise ValidationError("There are no missed allowance weeks to catch up on")
        return report

    def _apply_catch_up(
        self,
        plan: CatchUpPlan,
        now: datetime,
        correlation_id: UUID,
    ) -> CatchUpResult:
        new_balances: dict[UUID, Balances] = {kid.id: kid.balances for kid in self._state.kids}
        for entry in plan.entries:
            new_balances[entry.child_id] = new_balances[entry.child_id].add(entry.distribution)

        created = []
        for entry in plan.entries:
            created.append(Transaction(
                timestamp=now,
                child_id=entry.child_id,
                child_name=entry.child_name,
                bucket=TransactionBucket.ALL,
                amount=entry.amount,
                description=entry.description,
                kind=TransactionKind.ALLOWANCE,
            ))

        celebrations = []
        for kid in self._state.kids:
            kid.balances = new_balances[kid.id]
            if plan.weeks_by_child.get(kid.id):
                self._check_goal(kid, now, correlation_id, created, celebrations)

        settings = self._state.settings
        settings.rotation_week = advance_rotation(settings.rotation_week, plan.rotation_steps)
        settings.last_allowance_at = now
        self._prepend(created)

        names = {kid.id: kid.name for kid in self._state.kids}
        self._audit.log(AuditEventBuilder.catch_up_applied(
            weeks_by_child={names[cid]: weeks for cid, weeks in plan.weeks_by_child.items()},
            rotation_steps=plan.rotation_steps,
            correlation_id=correlation_id,
        ))
        return self._commit(CatchUpResult(
            operation=LedgerOperation.APPLY_MISSED_PERIODS,
            correlation_id=correlation_id,
            transactions=list(reversed(created)),
            celebrations=celebrations,
            weeks_by_child=plan.weeks_by_child,
            rotation_steps=plan.rotation_steps,
        ))

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def restore(self, state: AppState) -> OperationResult:
        """Replace the whole ledger with an imported backup and save it."""
        correlation_id = create_correlation_id()
        with self._validating(LedgerOperation.RESTORE, correlation_id):
            if not isinstance(state, AppState):
                raise ValidationError("Backup does not contain a ledger state")

        self._state = state.model_copy(deep=True)
        self._audit.log(AuditEventBuilder.state_event(
            AuditEventType.STATE_IMPORTED,
            description="Ledger restored from backup",
            details={
                "kids": len(self._state.kids),
                "transactions": len(self._state.transactions),
            },
            correlation_id=correlation_id,
        ))
        return self._commit(OperationResult(
            operation=LedgerOperation.RESTORE,
            correlation_id=correlation_id,
        ))

    # -------------------------------------------------------------------------
    # Command interface
    # -------------------------------------------------------------------------

    def apply(self, command: commands.Command) -> OperationResult:
        """Run one command. Errors propagate exactly as from the methods."""
        if isinstance(command, commands.SetupHousehold):
            return self.setup(command.children, command.allowance_day)
        if isinstance(command, commands.ApplyAllowance):
            return self.apply_allowance(command.child_id)
        if isinstance(command, commands.AddFunds):
            return self.add_funds(command.child_id, command.bucket, command.amount, command.description)
        if isinstance(command, commands.RecordSpending):
            return self.record_spending(command.child_id, command.bucket, command.amount, command.description)
        if isinstance(command, commands.SetGoal):
            return self.set_goal(command.child_id, command.name, command.target)
        if isinstance(command, commands.RemoveGoal):
            return self.remove_goal(command.child_id)
        if isinstance(command, commands.UpdateProfile):
            return self.update_profile(command.child_id, command.name, command.birthday)
        if isinstance(command, commands.SetAllowanceDay):
            return self.set_allowance_day(command.allowance_day)
        if isinstance(command, commands.ReconcileAges):
            return self.reconcile_ages()
        if isinstance(command, commands.UndoLastAllowance):
            return self.undo_last_allowance()
        if isinstance(command, commands.ApplyMissedPeriods):
            if command.weeks_by_child is not None:
                return self.apply_selected_missed_periods(command.weeks_by_child)
            return self.apply_missed_periods(command.weeks_to_apply, command.child_id)
        if isinstance(command, commands.RestoreState):
            return self.restore(command.state)
        raise ValidationError(f"Unknown command: {type(command).__name__}")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_child(self, child_id: Optional[UUID]) -> Child:
        if child_id is None:
            raise ValidationError("Please select a child")
        kid = self._state.find_child(child_id)
        if kid is None:
            raise ChildNotFoundError(f"Child not found: {child_id}")
        return kid

    @staticmethod
    def _coerce_weekday(day: Union[Weekday, str]) -> Weekday:
        try:
            return Weekday(day.lower() if isinstance(day, str) else day)
        except ValueError:
            raise ValidationError(f"Unknown allowance day: {day!r}") from None

    @contextmanager
    def _validating(self, operation: LedgerOperation, correlation_id: UUID) -> Iterator[None]:
        try:
            yield
        except ValidationError as e:
            self._audit.log_validation_failed(operation.value, str(e), correlation_id)
            raise

    def _prepend(self, created: list[Transaction]) -> None:
        """Add transactions given oldest first to the newest-first log."""
        if created:
            self._state.transactions = list(reversed(created)) + self._state.transactions

    def _commit(self, result: OperationResult, persist: bool = True) -> OperationResult:
        if self._store is None:
            result.persisted = False
        elif persist:
            try:
                self._store.persist(self._state)
            except CriticalPersistenceError as e:
                result.persisted = False
                result.persistence_error = str(e)
                result.persistence_critical = True
                self._audit.log_persistence_failure(str(e), critical=True, correlation_id=result.correlation_id)
            except PersistError as e:
                result.persisted = False
                result.persistence_error = str(e)
                self._audit.log_persistence_failure(str(e), critical=False, correlation_id=result.correlation_id)

        logger.debug(
            "ledger_operation_completed",
            operation=result.operation.value,
            correlation_id=str(result.correlation_id),
            transactions=len(result.transactions),
            persisted=result.persisted,
        )
        # Subscriber errors never fail an applied operation
        for callback in list(self._subscribers):
            try:
                callback(result)
            except Exception as e:
                logger.error(
                    "subscriber_failed",
                    operation=result.operation.value,
                    correlation_id=str(result.correlation_id),
                    error=str(e),
                    exc_info=True,
                )
        return result
