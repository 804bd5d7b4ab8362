"""Tests for Ledger operations."""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from allowance_tracker.errors import (
    ChildNotFoundError,
    InsufficientFundsError,
    ValidationError,
)
from allowance_tracker.ledger import AddFunds, ApplyAllowance, Ledger, SetGoal
from allowance_tracker.models import (
    AuditEventType,
    Bucket,
    ChildSetup,
    LedgerOperation,
    TransactionBucket,
    TransactionKind,
    Weekday,
)
from allowance_tracker.services.storage import StateStore


class TestSetup:
    """Tests for household setup."""

    def test_creates_children(self, household, clock):
        """Test setup stores children with cached ages and fresh settings."""
        ada, ben = household.kids
        assert (ada.name, ada.age) == ("Ada", 9)
        assert (ben.name, ben.age) == ("Ben", 7)
        assert household.settings.rotation_week == 1
        assert household.settings.last_allowance_at is None
        assert household.transactions == []

    def test_opening_balances_and_goal(self, ledger):
        ledger.setup([{
            "name": "Ada",
            "birthday": date(2014, 3, 15),
            "balances": {"save": 12, "spend": 3.5, "share": 0},
            "goal": {"name": "Bike", "target": 100},
        }], allowance_day="Saturday")
        kid = ledger.kids[0]
        assert kid.balances.spend == Decimal("3.50")
        assert kid.goal.name == "Bike"
        assert ledger.settings.allowance_day == Weekday.SATURDAY

    def test_requires_children(self, ledger):
        with pytest.raises(ValidationError):
            ledger.setup([])

    def test_rejects_future_birthday(self, ledger):
        with pytest.raises(ValidationError):
            ledger.setup([ChildSetup(name="Cy", birthday=date(2030, 1, 1))])

    def test_rejects_incomplete_child(self, ledger):
        with pytest.raises(ValidationError):
            ledger.setup([{"name": "", "birthday": "2014-03-15"}])

    def test_persists(self, household, store):
        assert store.load() == household.state


class TestApplyAllowance:
    """Tests for the weekly allowance."""

    def test_distributes_age_with_rotation(self, household, clock):
        """Test each child gets their age split by the current rotation."""
        result = household.apply_allowance()
        ada, ben = household.kids

        assert (ada.balances.save, ada.balances.spend, ada.balances.share) == (3, 3, 3)
        assert (ben.balances.save, ben.balances.spend, ben.balances.share) == (3, 2, 2)
        assert household.settings.rotation_week == 2
        assert household.settings.last_allowance_at == clock.now
        assert result.operation == LedgerOperation.APPLY_ALLOWANCE
        assert result.persisted

    def test_logs_one_undecomposed_entry_per_child(self, household):
        result = household.apply_allowance()
        log = household.transactions

        assert log == result.transactions
        assert [t.child_name for t in log] == ["Ben", "Ada"]
        assert [t.amount for t in log] == [Decimal("7"), Decimal("9")]
        assert all(t.kind == TransactionKind.ALLOWANCE for t in log)
        assert all(t.bucket == TransactionBucket.ALL for t in log)

    def test_next_week_uses_next_rotation(self, household, clock):
        household.apply_allowance()
        clock.advance(days=7)
        household.apply_allowance()
        ada = household.kids[0]
        # distribute(9, 1) + distribute(9, 2)
        assert ada.balances.total == Decimal("18")
        assert household.settings.rotation_week == 3

    def test_single_child(self, household):
        ben = household.kids[1]
        result = household.apply_allowance(ben.id)
        assert len(result.transactions) == 1
        assert household.kids[0].balances.total == 0
        assert household.kids[1].balances.total == 7

    def test_requires_children(self, ledger):
        with pytest.raises(ValidationError):
            ledger.apply_allowance()

    def test_preview_does_not_mutate(self, household):
        before = household.state
        preview = household.preview_allowance()
        ada, ben = household.kids
        assert preview[ada.id].total == 9
        assert preview[ben.id].save == 3
        assert household.state == before


class TestAddFunds:
    """Tests for manual additions."""

    def test_adds_to_bucket(self, household):
        ada = household.kids[0]
        result = household.add_funds(ada.id, Bucket.SHARE, Decimal("4.25"), "Birthday money")

        assert household.kids[0].balances.share == Decimal("4.25")
        entry = result.transactions[0]
        assert entry.kind == TransactionKind.MANUAL_ADDITION
        assert entry.bucket == TransactionBucket.SHARE
        assert entry.description == "Birthday money"

    def test_accepts_bucket_name(self, household):
        ada = household.kids[0]
        result = household.add_funds(ada.id, "spend", 2)
        assert household.kids[0].balances.spend == Decimal("2.00")
        assert result.transactions[0].description == "Money added"

    @pytest.mark.parametrize("amount", [0, -5, "10", None, float("nan"), True])
    def test_rejects_bad_amount(self, household, amount):
        ada = household.kids[0]
        before = household.state
        with pytest.raises(ValidationError):
            household.add_funds(ada.id, Bucket.SAVE, amount)
        assert household.state == before

    def test_rejects_unknown_child(self, household):
        with pytest.raises(ChildNotFoundError):
            household.add_funds(uuid4(), Bucket.SAVE, 1)

    def test_rejects_missing_child(self, household):
        with pytest.raises(ValidationError):
            household.add_funds(None, Bucket.SAVE, 1)

    def test_rejects_combined_bucket(self, household):
        ada = household.kids[0]
        with pytest.raises(ValidationError):
            household.add_funds(ada.id, "all", 1)

    def test_rejection_is_audited(self, household, audit_storage):
        with pytest.raises(ValidationError):
            household.add_funds(household.kids[0].id, Bucket.SAVE, 0)
        assert audit_storage.events[-1].event_type == AuditEventType.VALIDATION_FAILED


class TestRecordSpending:
    """Tests for deductions."""

    def test_deducts(self, household):
        ada = household.kids[0]
        household.add_funds(ada.id, Bucket.SPEND, 20)
        result = household.record_spending(ada.id, Bucket.SPEND, Decimal("7.50"), "Comic")

        assert household.kids[0].balances.spend == Decimal("12.50")
        assert result.transactions[0].kind == TransactionKind.DEDUCTION
        assert result.transactions[0].amount == Decimal("7.50")

    def test_spending_exact_balance(self, household):
        ada = household.kids[0]
        household.add_funds(ada.id, Bucket.SPEND, 20)
        result = household.record_spending(ada.id, Bucket.SPEND, 20, "   ")
        assert household.kids[0].balances.spend == 0
        assert result.transactions[0].description == "No description"

    def test_no_overdraft(self, household, audit_storage):
        """Test spending more than the bucket holds fails and changes nothing."""
        ada = household.kids[0]
        household.add_funds(ada.id, Bucket.SPEND, 20)
        before = household.state

        with pytest.raises(InsufficientFundsError) as excinfo:
            household.record_spending(ada.id, Bucket.SPEND, 50)

        assert household.kids[0].balances.spend == Decimal("20.00")
        assert household.state == before
        assert "20.00" in str(excinfo.value)
        assert excinfo.value.balance == Decimal("20.00")
        assert audit_storage.events[-1].event_type == AuditEventType.SPENDING_REJECTED

    def test_other_buckets_do_not_cover(self, household):
        ada = household.kids[0]
        household.add_funds(ada.id, Bucket.SAVE, 100)
        with pytest.raises(InsufficientFundsError):
            household.record_spending(ada.id, Bucket.SPEND, 1)


class TestGoals:
    """Tests for savings goals."""

    def test_set_and_remove(self, household):
        ada = household.kids[0]
        household.set_goal(ada.id, " Bike ", 50)
        assert household.kids[0].goal.name == "Bike"
        assert household.kids[0].goal.target == Decimal("50.00")

        household.remove_goal(ada.id)
        assert household.kids[0].goal is None

    def test_setting_goal_logs_nothing(self, household):
        household.set_goal(household.kids[0].id, "Bike", 50)
        assert household.transactions == []

    @pytest.mark.parametrize("name,target", [("", 50), ("Bike", 0), ("Bike", -1)])
    def test_rejects_bad_goal(self, household, name, target):
        with pytest.raises(ValidationError):
            household.set_goal(household.kids[0].id, name, target)

    def test_reaching_goal_celebrates_once(self, household):
        """Test the celebration fires on crossing and not on later increases."""
        ada = household.kids[0]
        household.set_goal(ada.id, "Bike", 10)

        first = household.add_funds(ada.id, Bucket.SAVE, 10)
        assert [c.goal_name for c in first.celebrations] == ["Bike"]
        assert first.transactions[0].kind == TransactionKind.GOAL_COMPLETED
        assert first.transactions[0].amount == Decimal("10.00")

        second = household.add_funds(ada.id, Bucket.SAVE, 5)
        assert second.celebrations == []

        kid = household.kids[0]
        assert kid.balances.save == Decimal("15.00")
        assert kid.goal is not None
        assert kid.goal.completed_at is not None

    def test_replacing_goal_rearms_celebration(self, household):
        ada = household.kids[0]
        household.set_goal(ada.id, "Bike", 10)
        household.add_funds(ada.id, Bucket.SAVE, 10)

        household.set_goal(ada.id, "Skates", 12)
        result = household.add_funds(ada.id, Bucket.SAVE, 2)
        assert [c.goal_name for c in result.celebrations] == ["Skates"]

    def test_allowance_can_complete_goal(self, household):
        ada = household.kids[0]
        household.set_goal(ada.id, "Book", 3)
        result = household.apply_allowance()
        assert [c.child_name for c in result.celebrations] == ["Ada"]

    def test_spending_never_celebrates(self, household):
        ada = household.kids[0]
        household.add_funds(ada.id, Bucket.SAVE, 10)
        household.set_goal(ada.id, "Bike", 5)
        result = household.record_spending(ada.id, Bucket.SAVE, 1)
        assert result.celebrations == []


class TestProfiles:
    """Tests for profile edits and birthdays."""

    def test_rename_logs_profile_update(self, household):
        ada = household.kids[0]
        result = household.update_profile(ada.id, name="Adaline")

        entry = result.transactions[0]
        assert entry.kind == TransactionKind.PROFILE_UPDATE
        assert entry.amount == 0
        assert entry.child_name == "Adaline"
        assert "Name: Ada -> Adaline" in entry.description
        assert household.kids[0].name == "Adaline"

    def test_birthday_change_reports_new_allowance(self, household):
        ben = household.kids[1]
        result = household.update_profile(ben.id, birthday=date(2015, 1, 1))
        description = result.transactions[0].description
        assert "Age: 7 -> 9" in description
        assert "$7.00 -> $9.00" in description
        assert household.kids[1].age == 9

    def test_no_change_logs_nothing(self, household):
        ada = household.kids[0]
        result = household.update_profile(ada.id, name="Ada")
        assert result.transactions == []
        assert household.transactions == []

    @pytest.mark.parametrize("changes", [
        {"name": "  "},
        {"birthday": date(2030, 1, 1)},
        {"birthday": date(2000, 1, 1)},
    ])
    def test_rejects_invalid_profile(self, household, changes):
        with pytest.raises(ValidationError):
            household.update_profile(household.kids[0].id, **changes)

    def test_birthday_reconciliation(self, household, clock):
        """Test crossing a birthday logs one birthday entry."""
        clock.advance(days=3)
        result = household.reconcile_ages()

        assert len(result.transactions) == 1
        entry = result.transactions[0]
        assert entry.kind == TransactionKind.BIRTHDAY
        assert entry.child_name == "Ben"
        assert "Now 8 years old" in entry.description
        assert household.kids[1].age == 8

        assert household.reconcile_ages().transactions == []

    def test_stale_cache_fixed_silently(self, store, clock):
        ledger = Ledger(store=store, clock=clock)
        ledger.setup([ChildSetup(name="Ada", birthday=date(2014, 3, 15))])
        state = ledger.state
        state.kids[0].age = 30

        restored = Ledger(state=state, store=store, clock=clock)
        result = restored.reconcile_ages()
        assert result.transactions == []
        assert restored.kids[0].age == 9


class TestSchedule:
    """Tests for the allowance day and due checks."""

    def test_set_allowance_day(self, household):
        household.set_allowance_day("friday")
        assert household.settings.allowance_day == Weekday.FRIDAY

    def test_rejects_unknown_day(self, household):
        with pytest.raises(ValidationError):
            household.set_allowance_day("someday")

    def test_next_allowance_date_is_strictly_future(self, household):
        # START is a Sunday and Sunday is the default day
        assert household.next_allowance_date() == date(2024, 1, 14)

    def test_not_due_on_first_run(self, household):
        assert not household.is_allowance_due()

    def test_due_a_week_later_on_allowance_day(self, household, clock):
        household.apply_allowance()
        clock.advance(days=6)
        assert not household.is_allowance_due()
        clock.advance(days=1)
        assert household.is_allowance_due()


class TestPersistenceAndEvents:
    """Tests for saving, snapshots and subscribers."""

    def test_every_operation_is_saved(self, household, store):
        household.apply_allowance()
        assert store.load() == household.state

    def test_snapshot_is_detached(self, household):
        snapshot = household.state
        snapshot.kids[0].name = "Changed"
        snapshot.transactions.clear()
        assert household.kids[0].name == "Ada"

    def test_failed_save_keeps_memory_state(self, failing_backend_cls, clock):
        """Test a failed save is reported and the operation still stands."""
        backend = failing_backend_cls(fail_keys={"saveSpendShareData"})
        store = StateStore(backend, write_attempts=1, retry_wait_max_seconds=0)
        ledger = Ledger(store=store, clock=clock)

        result = ledger.setup([ChildSetup(name="Ada", birthday=date(2014, 3, 15))])

        assert not result.persisted
        assert result.persistence_critical
        assert result.persistence_error
        assert ledger.kids[0].name == "Ada"

    def test_without_store_nothing_is_persisted(self, clock):
        ledger = Ledger(clock=clock)
        result = ledger.setup([ChildSetup(name="Ada", birthday=date(2014, 3, 15))])
        assert not result.persisted
        assert result.persistence_error is None

    def test_subscribers_receive_results(self, household):
        received = []
        unsubscribe = household.subscribe(received.append)

        household.apply_allowance()
        unsubscribe()
        household.add_funds(household.kids[0].id, Bucket.SAVE, 1)

        assert [r.operation for r in received] == [LedgerOperation.APPLY_ALLOWANCE]

    def test_failing_subscriber_does_not_fail_operation(self, household, store):
        """Test a raising subscriber is isolated from the caller and other subscribers."""
        def broken(result):
            raise RuntimeError("display crashed")

        received = []
        household.subscribe(broken)
        household.subscribe(received.append)

        result = household.apply_allowance()

        assert result.persisted
        assert [r.operation for r in received] == [LedgerOperation.APPLY_ALLOWANCE]
        assert store.load() == household.state
        assert household.settings.rotation_week == 2

    def test_operations_share_correlation_id_in_audit(self, household, audit_storage):
        result = household.add_funds(household.kids[0].id, Bucket.SAVE, 1)
        events = audit_storage.get_events_by_correlation_id(result.correlation_id)
        assert [e.event_type for e in events] == [AuditEventType.FUNDS_ADDED]


class TestCommands:
    """Tests for the command interface."""

    def test_dispatches_commands(self, household):
        ada = household.kids[0]
        household.apply(SetGoal(child_id=ada.id, name="Bike", target=Decimal("20")))
        household.apply(AddFunds(child_id=ada.id, bucket=Bucket.SAVE, amount=Decimal("5")))
        result = household.apply(ApplyAllowance())

        assert result.operation == LedgerOperation.APPLY_ALLOWANCE
        assert household.kids[0].balances.save == Decimal("8.00")
        assert household.kids[0].goal.name == "Bike"

    def test_command_errors_propagate(self, household):
        with pytest.raises(ChildNotFoundError):
            household.apply(AddFunds(child_id=uuid4(), bucket=Bucket.SAVE, amount=Decimal("5")))

    def test_timestamps_follow_clock(self, household, clock):
        clock.advance(days=2)
        result = household.add_funds(household.kids[0].id, Bucket.SAVE, 1)
        assert result.transactions[0].timestamp == clock.now
        assert result.transactions[0].timestamp.date() - timedelta(days=2) == date(2024, 1, 7)
