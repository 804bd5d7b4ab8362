"""Tests for the session startup flow."""

from datetime import date, timedelta

from allowance_tracker.audit import configure_logging
from allowance_tracker.config import get_settings, validate_all_settings
from allowance_tracker.ledger import Ledger
from allowance_tracker.models import AuditEventType, ChildSetup, TransactionKind, Weekday
from allowance_tracker.orchestrator import LedgerSession, create_session
from allowance_tracker.services.storage import LoadSource, serialize_state


STATE_KEY = "saveSpendShareData"
BACKUP_KEY = "saveSpendShareData_backup"


def seed(store, clock) -> Ledger:
    ledger = Ledger(store=store, clock=clock)
    ledger.setup([
        ChildSetup(name="Ada", birthday=date(2014, 3, 15)),
        ChildSetup(name="Ben", birthday=date(2016, 1, 10)),
    ])
    ledger.apply_allowance()
    return ledger


class TestLedgerSession:
    """Tests for LedgerSession.open()."""

    def test_first_run(self, store, audit_logger, audit_storage, clock):
        start = LedgerSession(store, audit_logger, clock).open()

        assert start.source == LoadSource.EMPTY
        assert start.needs_setup
        assert start.missed_periods is None
        assert not start.allowance_due
        assert audit_storage.events[0].event_type == AuditEventType.STATE_LOADED

    def test_reopens_saved_ledger(self, store, audit_logger, clock):
        seeded = seed(store, clock)
        start = LedgerSession(store, audit_logger, clock).open()

        assert start.source == LoadSource.PRIMARY
        assert not start.needs_setup
        assert start.ledger.state == seeded.state

    def test_records_birthdays_on_load(self, store, audit_logger, clock):
        seed(store, clock)
        clock.advance(days=3)

        start = LedgerSession(store, audit_logger, clock).open()

        assert [t.kind for t in start.birthdays] == [TransactionKind.BIRTHDAY]
        assert start.ledger.kids[1].age == 8
        assert store.load().kids[1].age == 8

    def test_detects_missed_weeks(self, store, audit_logger, audit_storage, clock):
        seed(store, clock)
        clock.advance(days=21)

        start = LedgerSession(store, audit_logger, clock).open()

        assert start.missed_periods.count == 2
        assert any(
            e.event_type == AuditEventType.MISSED_PERIODS_DETECTED
            for e in audit_storage.events
        )
        # Nothing is paid until asked
        assert start.ledger.kids[0].balances.total == 9

    def test_allowance_due(self, store, audit_logger, clock):
        seed(store, clock)
        clock.advance(days=7)
        assert LedgerSession(store, audit_logger, clock).open().allowance_due

    def test_recovers_from_backup(self, store, backend, audit_logger, audit_storage, clock):
        seeded = seed(store, clock)
        backend.set(BACKUP_KEY, serialize_state(seeded.state))
        backend.set(STATE_KEY, "corrupted")

        start = LedgerSession(store, audit_logger, clock).open()

        assert start.source == LoadSource.BACKUP
        assert start.warning
        assert start.ledger.state == seeded.state
        assert audit_storage.events[0].event_type == AuditEventType.STATE_RESTORED_FROM_BACKUP

    def test_data_loss_starts_fresh(self, store, backend, audit_logger, audit_storage, clock):
        backend.set(STATE_KEY, "corrupted")
        backend.set(BACKUP_KEY, "also corrupted")

        start = LedgerSession(store, audit_logger, clock).open()

        assert start.source == LoadSource.FRESH
        assert start.data_loss is not None
        assert start.needs_setup
        assert audit_storage.events[0].event_type == AuditEventType.STATE_RESET_AFTER_DATA_LOSS


class TestCreateSession:
    """Tests for the file-backed factory."""

    def test_persists_between_sessions(self, tmp_path, clock):
        first = create_session(tmp_path, clock=clock).open()
        first.ledger.setup([ChildSetup(name="Ada", birthday=date(2014, 3, 15))])
        first.ledger.apply_allowance()

        clock.advance(days=1)
        second = create_session(tmp_path, clock=clock).open()

        assert second.source == LoadSource.PRIMARY
        assert second.ledger.state == first.ledger.state
        assert (tmp_path / "saveSpendShareData.json").exists()
        assert (tmp_path / "audit.jsonl").exists()

    def test_catch_up_after_downtime(self, tmp_path, clock):
        first = create_session(tmp_path, clock=clock).open()
        first.ledger.setup([ChildSetup(name="Ada", birthday=date(2014, 3, 15))])
        first.ledger.apply_allowance()

        clock.advance(days=21)
        second = create_session(tmp_path, clock=clock).open()
        result = second.ledger.apply_missed_periods()

        assert len(result.transactions) == 2
        assert second.ledger.settings.last_allowance_at == clock.now
        assert second.ledger.settings.last_allowance_at - first.ledger.settings.last_allowance_at == timedelta(days=21)


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DEBUG_MODE", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        settings = get_settings()

        assert settings.storage.state_key == STATE_KEY
        assert settings.storage.backup_key == BACKUP_KEY
        assert settings.schedule.default_allowance_day == Weekday.SUNDAY
        assert settings.app.effective_log_level == "INFO"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ALLOWANCE_STORAGE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("ALLOWANCE_SCHEDULE_DEFAULT_ALLOWANCE_DAY", "friday")
        monkeypatch.setenv("DEBUG_MODE", "true")
        settings = get_settings()

        assert settings.storage.data_dir == tmp_path
        assert settings.schedule.default_allowance_day == Weekday.FRIDAY
        assert settings.app.effective_log_level == "DEBUG"

    def test_aliased_backup_key_is_invalid(self, monkeypatch):
        monkeypatch.setenv("ALLOWANCE_STORAGE_BACKUP_KEY", STATE_KEY)
        results = validate_all_settings()

        assert results["storage"] is False
        assert "backup_key" in results["storage_error"]
        assert results["schedule"] is True

    def test_console_logging(self, monkeypatch, tmp_path, clock):
        monkeypatch.setenv("LOG_FORMAT", "console")
        start = create_session(tmp_path, clock=clock).open()

        assert start.needs_setup
        configure_logging()
