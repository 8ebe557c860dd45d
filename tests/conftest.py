import os
import threading
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reminder_engine.alerts.tiers import Tier
from reminder_engine.core.errors import DuplicateAlert, LedgerUnavailable
from reminder_engine.db.base import Base
from reminder_engine.notification.transport import Notification

NOW = datetime(2026, 3, 24, 9, 0, tzinfo=timezone.utc)


class RecordingTransport:
    """In-memory transport: records deliveries, optionally fails them.

    ``fail_with`` is raised on every call; ``failures`` pops one exception
    per call until exhausted.
    """

    def __init__(self) -> None:
        self.delivered: list[Notification] = []
        self.calls = 0
        self.fail_with: BaseException | None = None
        self.failures: list[BaseException] = []
        self._lock = threading.Lock()

    def deliver(self, notification: Notification) -> None:
        with self._lock:
            self.calls += 1
            if self.failures:
                raise self.failures.pop(0)
            if self.fail_with is not None:
                raise self.fail_with
            self.delivered.append(notification)

    def recipients(self) -> list[str]:
        return [n.recipient for n in self.delivered]


class MemoryLedger:
    """Dict-backed alert ledger with the same duplicate semantics as the SQL one.

    Set ``unavailable`` to make every call raise ``LedgerUnavailable``;
    ``fail_insert_after`` lets that many inserts succeed first.
    """

    def __init__(self) -> None:
        self.rows: dict[tuple, dict] = {}
        self.unavailable = False
        self.fail_insert_after: int | None = None
        self.inserts = 0

    def _check(self) -> None:
        if self.unavailable:
            raise LedgerUnavailable("ledger offline")

    def exists(self, subject_id, period_id, tier) -> bool:
        self._check()
        return (subject_id, period_id, str(tier)) in self.rows

    def insert(self, subject_id, period_id, tier, sent_at, days_since_activation) -> None:
        self._check()
        if self.fail_insert_after is not None and self.inserts >= self.fail_insert_after:
            raise LedgerUnavailable("ledger offline")
        key = (subject_id, period_id, str(tier))
        if key in self.rows:
            raise DuplicateAlert(f"{tier} already recorded")
        self.inserts += 1
        self.rows[key] = {"sent_at": sent_at, "days_since_activation": days_since_activation}

    def tier_counts(self, period_id) -> dict[str, int]:
        self._check()
        counts: dict[str, int] = {}
        for _, pid, tier in self.rows:
            if pid == period_id:
                counts[tier] = counts.get(tier, 0) + 1
        return counts

    def recorded_subjects(self, tier: Tier) -> set:
        return {sid for sid, _, t in self.rows if t == str(tier)}


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def ledger() -> MemoryLedger:
    return MemoryLedger()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def db_session():
    """In-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    with session_factory() as session:
        yield session


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")

    from reminder_engine.core.settings import get_settings

    get_settings.cache_clear()

    from reminder_engine.main import app

    with TestClient(app) as test_client:
        yield test_client

    get_settings.cache_clear()
    os.environ.pop("DATABASE_URL", None)
