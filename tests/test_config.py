"""Tests for reminder_engine/core/settings.py and alerts/config.py."""
from __future__ import annotations

import dataclasses

import pytest

from reminder_engine.alerts.config import AlertConfig
from reminder_engine.alerts.tiers import Tier
from reminder_engine.core.settings import Settings


def test_defaults():
    settings = Settings()

    assert settings.smtp_port == 587
    assert settings.alert_max_retries == 3
    assert settings.alert_retry_delay_seconds == 2.0
    assert settings.alert_attempt_timeout_seconds == 10.0


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ALERT_MAX_RETRIES", "5")
    monkeypatch.setenv("ALERT_WARNING_SUCCESS_RATE", "90")
    monkeypatch.setenv("OVERSIGHT_EMAILS", "a@example.org, b@example.org,,")

    settings = Settings()

    assert settings.alert_max_retries == 5
    assert settings.alert_warning_success_rate == 90
    assert settings.oversight_recipients == ("a@example.org", "b@example.org")


def test_alert_config_from_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ALERT_RETRY_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("ALERT_CRITICAL_SUCCESS_RATE", "40")
    monkeypatch.setenv("OVERSIGHT_EMAILS", "boss@example.org")

    config = AlertConfig.from_settings(Settings())

    assert config.retry_delay == 0.5
    assert config.alarms.critical_success_rate == 40
    assert config.oversight_recipients == ("boss@example.org",)
    assert config.thresholds[Tier.FINAL] == 21


def test_alert_config_is_immutable():
    config = AlertConfig()

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.max_retries = 10
    with pytest.raises(TypeError):
        config.thresholds[Tier.FIRST] = 1
