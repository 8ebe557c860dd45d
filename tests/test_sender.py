"""Tests for reminder_engine/notification/sender.py.

The transport is an in-memory fake; time is a fake clock advanced by the
injected sleep, so retry delays cost nothing.
"""
from __future__ import annotations

import smtplib
import threading
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from reminder_engine.alerts.domain import NotificationTask, Period, Subject
from reminder_engine.alerts.tiers import Tier
from reminder_engine.core.errors import DeliveryTimeout
from reminder_engine.notification.sender import TIMEOUT_REASON, RetryingSender
from reminder_engine.notification.templates import TemplateResolver
from reminder_engine.notification.transport import Notification


# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------

class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class SlowRelay:
    """Transport whose every call takes *delay* seconds, then fails with *error* if set."""

    def __init__(self, delay: float, error: BaseException | None = None) -> None:
        self.delay = delay
        self.error = error
        self.calls = 0
        self.in_flight = 0
        self.peak = 0
        self.delivered: list[str] = []
        self._lock = threading.Lock()

    def deliver(self, notification: Notification) -> None:
        with self._lock:
            self.calls += 1
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        try:
            time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            with self._lock:
                self.delivered.append(notification.recipient)
        finally:
            with self._lock:
                self.in_flight -= 1


def _task(email: str = "alice@example.com") -> NotificationTask:
    period = Period(id=uuid4(), year=2026, semester="S1", activated_at=datetime(2026, 3, 21, tzinfo=timezone.utc))
    subject = Subject(id=uuid4(), name="Alice Smith", email=email, grade="G5")
    return NotificationTask(subject=subject, tier=Tier.FIRST, period=period, days_since_activation=3)


def _sender(transport, clock: FakeClock, **kwargs) -> RetryingSender:
    kwargs.setdefault("attempt_timeout", 0)
    return RetryingSender(transport, TemplateResolver(), sleep=clock.sleep, clock=clock, **kwargs)


# ===========================================================================
# send
# ===========================================================================

class TestSend:
    def test_first_attempt_success(self, transport):
        clock = FakeClock()
        outcome = _sender(transport, clock).send(_task())

        assert outcome.success is True
        assert outcome.attempts == 1
        assert outcome.error is None
        assert transport.recipients() == ["alice@example.com"]
        assert clock.sleeps == []

    def test_retry_succeeds_on_third_attempt(self, transport):
        transport.failures = [
            smtplib.SMTPException("temporary error"),
            smtplib.SMTPException("temporary error"),
        ]
        clock = FakeClock()
        outcome = _sender(transport, clock, retry_delay=2.0).send(_task())

        assert outcome.success is True
        assert outcome.attempts == 3
        assert clock.sleeps == [2.0, 2.0]
        # cumulative latency includes the retry delays
        assert outcome.latency_ms == 4000

    def test_exhausted_retries_return_last_error(self, transport):
        transport.failures = [smtplib.SMTPException("first"), smtplib.SMTPException("second")]
        transport.fail_with = smtplib.SMTPException("permanent error")
        clock = FakeClock()
        outcome = _sender(transport, clock, max_retries=3, retry_delay=2.0).send(_task())

        assert outcome.success is False
        assert outcome.attempts == 3
        assert outcome.error == "permanent error"
        assert transport.calls == 3
        # no delay after the final attempt
        assert clock.sleeps == [2.0, 2.0]
        assert outcome.latency_ms == 4000

    def test_timeout_error_reported_as_timeout(self, transport):
        transport.fail_with = TimeoutError("timed out")
        outcome = _sender(transport, FakeClock()).send(_task())

        assert outcome.success is False
        assert outcome.error == TIMEOUT_REASON

    def test_delivery_timeout_reported_as_timeout(self, transport):
        transport.fail_with = DeliveryTimeout()
        outcome = _sender(transport, FakeClock()).send(_task())
        assert outcome.error == "Timeout"

    def test_unexpected_exception_never_raises(self, transport):
        transport.fail_with = RuntimeError("boom")
        outcome = _sender(transport, FakeClock()).send(_task())

        assert outcome.success is False
        assert outcome.error == "boom"

    def test_render_failure_is_captured(self, transport):
        resolver = MagicMock()
        resolver.render.side_effect = KeyError("tier")
        clock = FakeClock()
        sender = RetryingSender(transport, resolver, attempt_timeout=0, sleep=clock.sleep, clock=clock)

        outcome = sender.send(_task())

        assert outcome.success is False
        assert outcome.attempts == 0
        assert outcome.error.startswith("Render failed")
        assert transport.calls == 0

    def test_rendered_content_reaches_transport(self, transport):
        _sender(transport, FakeClock()).send(_task())

        sent = transport.delivered[0]
        assert "Alice Smith" in sent.body
        assert "2026 - S1" in sent.subject

    def test_address_not_in_logs(self, transport, caplog):
        transport.fail_with = smtplib.SMTPException("rejected")
        with caplog.at_level("DEBUG"):
            _sender(transport, FakeClock()).send(_task(email="secret.address@example.com"))

        assert "secret.address@example.com" not in caplog.text

    def test_max_retries_must_be_positive(self, transport):
        with pytest.raises(ValueError):
            RetryingSender(transport, TemplateResolver(), max_retries=0)


# ===========================================================================
# per-attempt timeout
# ===========================================================================

class TestAttemptTimeout:
    def test_slow_call_that_fails_late_is_retried_without_overlap(self):
        relay = SlowRelay(delay=0.2, error=TimeoutError("socket timed out"))
        sender = RetryingSender(relay, TemplateResolver(), max_retries=3, retry_delay=0, attempt_timeout=0.05)

        outcome = sender.send(_task())

        assert outcome.success is False
        assert outcome.error == TIMEOUT_REASON
        assert outcome.attempts == 3
        assert relay.calls == 3
        assert relay.peak == 1
        assert relay.in_flight == 0

    def test_slow_call_that_delivers_late_counts_as_success(self):
        relay = SlowRelay(delay=0.2)
        sender = RetryingSender(relay, TemplateResolver(), max_retries=3, retry_delay=0, attempt_timeout=0.05)

        outcome = sender.send(_task())

        assert outcome.success is True
        assert outcome.attempts == 1
        assert relay.delivered == ["alice@example.com"]
        assert relay.peak == 1

    def test_no_delivery_after_failed_outcome(self):
        relay = SlowRelay(delay=0.2, error=TimeoutError("socket timed out"))
        sender = RetryingSender(relay, TemplateResolver(), max_retries=2, retry_delay=0, attempt_timeout=0.05)

        outcome = sender.send(_task())
        calls_at_return = relay.calls
        time.sleep(0.3)

        assert outcome.success is False
        assert relay.calls == calls_at_return
        assert relay.in_flight == 0

    def test_fast_attempt_within_timeout(self, transport):
        sender = RetryingSender(transport, TemplateResolver(), attempt_timeout=5, retry_delay=0)
        outcome = sender.send(_task())

        assert outcome.success is True
        assert len(transport.delivered) == 1
