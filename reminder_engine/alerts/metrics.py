"""Run metrics and operational alarm classification.

Classification only: logging or paging on the resulting ``AlarmLevel`` is
left to the caller.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from enum import StrEnum

from reminder_engine.notification.sender import DispatchOutcome


class AlarmLevel(StrEnum):
    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class AlarmThresholds:
    warning_success_rate: int = 80
    critical_success_rate: int = 50
    max_failed_emails: int = 20


@dataclass(frozen=True, slots=True)
class RunMetrics:
    total_emails: int
    successful_emails: int
    failed_emails: int
    success_rate: int
    total_time_ms: int
    average_time_per_email: int
    average_time_per_batch: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def aggregate(
    outcomes: Sequence[DispatchOutcome],
    total_time_ms: int = 0,
    batch_durations_ms: Sequence[int] = (),
) -> RunMetrics:
    total = len(outcomes)
    successful = sum(1 for outcome in outcomes if outcome.success)
    failed = total - successful

    # An empty run is a healthy run.
    success_rate = round(successful / total * 100) if total else 100
    per_email = round(sum(outcome.latency_ms for outcome in outcomes) / successful) if successful else 0
    per_batch = round(sum(batch_durations_ms) / len(batch_durations_ms)) if batch_durations_ms else 0

    return RunMetrics(
        total_emails=total,
        successful_emails=successful,
        failed_emails=failed,
        success_rate=success_rate,
        total_time_ms=total_time_ms,
        average_time_per_email=per_email,
        average_time_per_batch=per_batch,
    )


def check_alarms(metrics: RunMetrics, thresholds: AlarmThresholds | None = None) -> AlarmLevel:
    thresholds = thresholds or AlarmThresholds()

    if metrics.success_rate < thresholds.critical_success_rate:
        return AlarmLevel.CRITICAL
    if metrics.success_rate < thresholds.warning_success_rate:
        return AlarmLevel.WARNING
    if metrics.failed_emails > thresholds.max_failed_emails:
        return AlarmLevel.WARNING
    return AlarmLevel.NONE
