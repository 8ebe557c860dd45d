from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from reminder_engine.alerts.metrics import AlarmThresholds
from reminder_engine.alerts.tiers import DEFAULT_THRESHOLDS, Tier
from reminder_engine.core.settings import Settings
from reminder_engine.notification.planner import DEFAULT_VOLUME_RULES, VolumeRule


@dataclass(frozen=True)
class AlertConfig:
    """Immutable run configuration handed to the orchestrator at construction."""

    thresholds: Mapping[Tier, int] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_THRESHOLDS)))
    oversight_recipients: tuple[str, ...] = ()
    volume_rules: tuple[VolumeRule, ...] = DEFAULT_VOLUME_RULES
    max_retries: int = 3
    retry_delay: float = 2.0
    attempt_timeout: float = 10.0
    alarms: AlarmThresholds = field(default_factory=AlarmThresholds)

    @classmethod
    def from_settings(cls, settings: Settings) -> AlertConfig:
        return cls(
            oversight_recipients=settings.oversight_recipients,
            max_retries=settings.alert_max_retries,
            retry_delay=settings.alert_retry_delay_seconds,
            attempt_timeout=settings.alert_attempt_timeout_seconds,
            alarms=AlarmThresholds(
                warning_success_rate=settings.alert_warning_success_rate,
                critical_success_rate=settings.alert_critical_success_rate,
                max_failed_emails=settings.alert_max_failed_emails,
            ),
        )
