"""Tests for the FastAPI routes.

Covers:
- GET /alerts/status: progress report for the active period
- POST /alerts/run: one reminder run over the SQL-backed stack

The orchestrator dependency is overridden so runs use the in-memory
session, a recording transport, a fixed clock and no real pauses.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from reminder_engine.alerts.compliance import SqlComplianceSource
from reminder_engine.alerts.config import AlertConfig
from reminder_engine.alerts.ledger import SqlAlertLedger
from reminder_engine.alerts.orchestrator import RunOrchestrator
from reminder_engine.api.deps import get_orchestrator
from reminder_engine.core.errors import LedgerUnavailable
from reminder_engine.db.models import AlertRecord
from reminder_engine.db.repositories import StaffMemberRepository, TimeEntryRepository, TimePeriodRepository

NOW = datetime(2026, 3, 24, 9, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _seed(db, days_ago: int) -> None:
    period = TimePeriodRepository(db).create(
        year=2026, semester="S1", is_active=True, activated_at=NOW - timedelta(days=days_ago, hours=2),
    )
    staff = StaffMemberRepository(db)
    staff.create(name="Alice Smith", email="alice@example.com", grade="G5")
    staff.create(name="Bob Martin", email="bob@example.com")
    done = staff.create(name="Carol White", email="carol@example.com")
    TimeEntryRepository(db).create(staff_member_id=done.id, time_period_id=period.id, hours=4)
    db.commit()


@pytest.fixture()
def api(client: TestClient, db_session, transport):
    """TestClient whose orchestrator runs against the in-memory session."""

    def _orchestrator() -> RunOrchestrator:
        return RunOrchestrator(
            AlertConfig(oversight_recipients=("manager@example.org",), retry_delay=0, attempt_timeout=0),
            SqlComplianceSource(db_session),
            SqlAlertLedger(db_session),
            transport,
            now=lambda: NOW,
            sleep=lambda _: None,
        )

    client.app.dependency_overrides[get_orchestrator] = _orchestrator
    yield client
    client.app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# GET /alerts/status
# ---------------------------------------------------------------------------


def test_status_without_active_period_returns_404(api):
    response = api.get("/alerts/status")

    assert response.status_code == 404
    assert response.json()["detail"] == "No active period found"


def test_status_reports_progress(api, db_session):
    _seed(db_session, days_ago=3)

    response = api.get("/alerts/status")

    assert response.status_code == 200
    body = response.json()
    assert body["active_period"]["semester"] == "S1"
    assert body["days_since_activation"] == 3
    assert body["staff_without_entries"] == 2
    assert body["total_staff"] == 3
    assert body["compliance_rate"] == 33
    assert body["tier_counts"]["FIRST_REMINDER"] == 0
    assert body["next_tier"] == "SECOND_REMINDER"


def test_status_ledger_down_returns_503(client):
    orchestrator = MagicMock()
    orchestrator.status.side_effect = LedgerUnavailable("ledger offline")
    client.app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        response = client.get("/alerts/status")
    finally:
        client.app.dependency_overrides.clear()

    assert response.status_code == 503


# ---------------------------------------------------------------------------
# POST /alerts/run
# ---------------------------------------------------------------------------


def test_run_sends_due_tier_and_records(api, db_session, transport):
    _seed(db_session, days_ago=3)

    response = api.post("/alerts/run")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["reason"] == "dispatched"
    assert body["tier"] == "FIRST_REMINDER"
    assert body["total_alerts_sent"] == 2
    assert body["metrics"]["success_rate"] == 100
    assert sorted(transport.recipients()) == ["alice@example.com", "bob@example.com"]
    assert db_session.query(AlertRecord).count() == 2


def test_run_twice_is_idempotent(api, db_session, transport):
    _seed(db_session, days_ago=3)

    api.post("/alerts/run")
    body = api.post("/alerts/run").json()

    assert body["reason"] == "already_alerted"
    assert body["total_alerts_sent"] == 0
    assert len(transport.delivered) == 2


def test_run_copies_oversight_on_second_tier(api, db_session, transport):
    _seed(db_session, days_ago=7)

    body = api.post("/alerts/run").json()

    assert body["tier"] == "SECOND_REMINDER"
    assert body["oversight_action"] == "copy"
    assert body["oversight_sent"] is True
    assert "manager@example.org" in transport.recipients()


def test_run_no_alert_due(api, db_session, transport):
    _seed(db_session, days_ago=5)

    body = api.post("/alerts/run").json()

    assert body["reason"] == "no_alert_due"
    assert body["next_tier"] == "SECOND_REMINDER"
    assert body["next_tier_due_in"] == 2
    assert transport.calls == 0


def test_run_without_active_period(api):
    response = api.post("/alerts/run")

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["reason"] == "no_active_period"
