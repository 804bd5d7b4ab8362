"""
Shared fixtures.

Time is frozen through FakeClock and storage lives in memory, so no
test touches the wall clock or the disk unless it asks for tmp_path.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

from allowance_tracker.audit import AuditLogger
from allowance_tracker.ledger import Ledger
from allowance_tracker.models import ChildSetup
from allowance_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryKeyValueBackend,
    StateStore,
    StorageError,
)


# A Sunday
START = datetime(2024, 1, 7, 9, 0, tzinfo=timezone.utc)

ADA_BIRTHDAY = date(2014, 3, 15)   # 9 on START
BEN_BIRTHDAY = date(2016, 1, 10)   # 7 on START, 8 three days later


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self.now += timedelta(days=days, hours=hours)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


class FailingBackend(InMemoryKeyValueBackend):
    """
    In-memory backend whose writes to selected keys fail.

    ``failures`` is how many writes fail before they start succeeding;
    None fails forever.
    """

    def __init__(self, fail_keys: set[str], failures: Optional[int] = None, initial=None):
        super().__init__(initial)
        self.fail_keys = fail_keys
        self.failures = failures
        self.set_calls = 0

    def set(self, key: str, value: str) -> None:
        self.set_calls += 1
        if key in self.fail_keys and (self.failures is None or self.failures > 0):
            if self.failures is not None:
                self.failures -= 1
            raise StorageError(f"disk full while writing {key}")
        super().set(key, value)


@pytest.fixture
def failing_backend_cls() -> type[FailingBackend]:
    return FailingBackend


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> InMemoryKeyValueBackend:
    return InMemoryKeyValueBackend()


@pytest.fixture
def store(backend) -> StateStore:
    return StateStore(backend, write_attempts=1, retry_wait_max_seconds=0)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger(store, audit_logger, clock) -> Ledger:
    return Ledger(store=store, audit_logger=audit_logger, clock=clock)


@pytest.fixture
def household(ledger) -> Ledger:
    """Ledger set up with Ada (9) and Ben (7)."""
    ledger.setup([
        ChildSetup(name="Ada", birthday=ADA_BIRTHDAY),
        ChildSetup(name="Ben", birthday=BEN_BIRTHDAY),
    ])
    return ledger
