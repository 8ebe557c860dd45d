"""Run orchestrator: one externally triggered reminder run.

State machine::

    IDLE -> EVALUATING -> NO_ALERT_DUE                      (terminal)
                       -> GATING -> DISPATCHING -> AGGREGATING -> DONE

Every terminal result carries a machine-readable ``RunReason``.  Failed
sends are data, never control flow; only an unavailable ledger or
compliance source ends a run early, and a run that stops mid-dispatch
still reports the metrics gathered so far.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from reminder_engine.alerts.compliance import ComplianceSource
from reminder_engine.alerts.config import AlertConfig
from reminder_engine.alerts.domain import NotificationTask, OversightSummary, Period, compliance_rate
from reminder_engine.alerts.escalation import OversightNotifier, oversight_action
from reminder_engine.alerts.ledger import AlertLedger, LedgerGate
from reminder_engine.alerts.metrics import AlarmLevel, RunMetrics, aggregate, check_alarms
from reminder_engine.alerts.thresholds import evaluate
from reminder_engine.alerts.tiers import OversightAction, Tier
from reminder_engine.core.errors import ComplianceSourceUnavailable, LedgerUnavailable, NoActivePeriod
from reminder_engine.notification.dispatcher import BatchDispatcher
from reminder_engine.notification.planner import plan
from reminder_engine.notification.sender import DispatchOutcome, RetryingSender
from reminder_engine.notification.templates import TemplateResolver
from reminder_engine.notification.transport import NotificationTransport

logger = logging.getLogger(__name__)


class RunState(StrEnum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    NO_ALERT_DUE = "no_alert_due"
    GATING = "gating"
    DISPATCHING = "dispatching"
    AGGREGATING = "aggregating"
    DONE = "done"


class RunReason(StrEnum):
    NO_ACTIVE_PERIOD = "no_active_period"
    NO_ALERT_DUE = "no_alert_due"
    ALL_COMPLIANT = "all_compliant"
    ALREADY_ALERTED = "already_alerted"
    DISPATCHED = "dispatched"
    CANCELLED = "cancelled"
    LEDGER_UNAVAILABLE = "ledger_unavailable"
    COMPLIANCE_UNAVAILABLE = "compliance_unavailable"


_FAILED_REASONS = frozenset({
    RunReason.NO_ACTIVE_PERIOD,
    RunReason.LEDGER_UNAVAILABLE,
    RunReason.COMPLIANCE_UNAVAILABLE,
})


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class RunResult:
    reason: RunReason
    message: str
    period: Period | None = None
    days_since_activation: int | None = None
    tier: Tier | None = None
    next_tier: Tier | None = None
    next_tier_due_in: int | None = None
    staff_without_entries: int = 0
    outcomes: list[DispatchOutcome] = field(default_factory=list)
    alerts_recorded: int = 0
    oversight_action: OversightAction = OversightAction.NONE
    oversight_sent: bool = False
    metrics: RunMetrics | None = None
    alarm: AlarmLevel | None = None

    @property
    def success(self) -> bool:
        return self.reason not in _FAILED_REASONS

    @property
    def sent_alerts(self) -> list[DispatchOutcome]:
        return [outcome for outcome in self.outcomes if outcome.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "reason": str(self.reason),
            "message": self.message,
            "period": _serialize_period(self.period),
            "days_since_activation": self.days_since_activation,
            "tier": self.tier,
            "next_tier": self.next_tier,
            "next_tier_due_in": self.next_tier_due_in,
            "staff_without_entries": self.staff_without_entries,
            "total_alerts_sent": len(self.sent_alerts),
            "alerts_recorded": self.alerts_recorded,
            "sent_alerts": [
                {"subject_id": str(o.subject.id), "name": o.subject.name, "tier": o.tier}
                for o in self.sent_alerts
            ],
            "failed_alerts": [
                {"subject_id": str(o.subject.id), "tier": o.tier, "error": o.error}
                for o in self.outcomes
                if not o.success
            ],
            "oversight_action": str(self.oversight_action),
            "oversight_sent": self.oversight_sent,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "alarm": str(self.alarm) if self.alarm else None,
        }


@dataclass(frozen=True)
class StatusReport:
    period: Period
    days_since_activation: int
    tier_counts: dict[str, int]
    staff_without_entries: int
    total_staff: int
    compliance_rate: int
    next_tier: Tier | None
    next_tier_due_in: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "active_period": _serialize_period(self.period),
            "days_since_activation": self.days_since_activation,
            "tier_counts": self.tier_counts,
            "staff_without_entries": self.staff_without_entries,
            "total_staff": self.total_staff,
            "compliance_rate": self.compliance_rate,
            "next_tier": self.next_tier,
            "next_tier_due_in": self.next_tier_due_in,
        }


def _serialize_period(period: Period | None) -> dict[str, Any] | None:
    if period is None:
        return None
    return {
        "id": str(period.id),
        "year": period.year,
        "semester": period.semester,
        "activated_at": period.activated_at.isoformat(),
    }


# ---------------------------------------------------------------------------
# RunOrchestrator
# ---------------------------------------------------------------------------

class RunOrchestrator:
    """Compose evaluation, gating, dispatch and aggregation into ``run_once``."""

    def __init__(
        self,
        config: AlertConfig,
        compliance: ComplianceSource,
        ledger: AlertLedger,
        transport: NotificationTransport,
        resolver: TemplateResolver | None = None,
        *,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.compliance = compliance
        self.ledger = ledger
        self.resolver = resolver or TemplateResolver()
        self._now = now
        self._clock = clock
        self.state = RunState.IDLE

        self.gate = LedgerGate(ledger)
        self.sender = RetryingSender(
            transport,
            self.resolver,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            attempt_timeout=config.attempt_timeout,
            sleep=sleep or time.sleep,
            clock=clock,
        )
        self.dispatcher = BatchDispatcher(self.sender, self.gate, sleep=sleep, clock=clock, now=now)
        self.oversight = OversightNotifier(self.sender, self.resolver, config.oversight_recipients)

    def _enter(self, state: RunState) -> None:
        logger.debug("Run state %s -> %s", self.state, state)
        self.state = state

    def _finish(self, result: RunResult) -> RunResult:
        if result.metrics is None:
            # runs that send nothing still report an empty, healthy aggregate
            result.metrics = aggregate([])
            result.alarm = check_alarms(result.metrics, self.config.alarms)
        self._enter(RunState.DONE if result.reason != RunReason.NO_ALERT_DUE else RunState.NO_ALERT_DUE)
        log = logger.info if result.success else logger.error
        log("Reminder run finished: %s (%s)", result.reason, result.message)
        return result

    # -- run ----------------------------------------------------------------

    def run_once(self, cancel: threading.Event | None = None) -> RunResult:
        self._enter(RunState.EVALUATING)
        try:
            period = self.compliance.active_period()
        except ComplianceSourceUnavailable as exc:
            return self._finish(RunResult(RunReason.COMPLIANCE_UNAVAILABLE, str(exc)))
        if period is None:
            return self._finish(RunResult(RunReason.NO_ACTIVE_PERIOD, "No active period found"))

        evaluation = evaluate(self._now(), period.activated_at, self.config.thresholds)
        days = evaluation.days_since_activation
        logger.info("Checking reminders for %s: day %d since activation", period.name, days)

        result = RunResult(
            RunReason.DISPATCHED,
            "",
            period=period,
            days_since_activation=days,
            tier=evaluation.due_tier,
            next_tier=evaluation.next_tier,
            next_tier_due_in=evaluation.next_tier_due_in,
        )
        if evaluation.due_tier is None:
            result.reason = RunReason.NO_ALERT_DUE
            result.message = f"No reminder due today (day {days})"
            return self._finish(result)

        tier = evaluation.due_tier
        action = oversight_action(tier)
        self._enter(RunState.GATING)
        try:
            candidates = self.compliance.non_compliant_subjects(period)
            total_staff = self.compliance.total_subjects() if action != OversightAction.NONE else 0
        except ComplianceSourceUnavailable as exc:
            result.reason, result.message = RunReason.COMPLIANCE_UNAVAILABLE, str(exc)
            return self._finish(result)

        result.staff_without_entries = len(candidates)
        if not candidates:
            result.reason = RunReason.ALL_COMPLIANT
            result.message = "All STAFF members have recorded their time entries"
            return self._finish(result)

        try:
            pending = self.gate.filter_unalerted(candidates, period, tier)
        except LedgerUnavailable as exc:
            result.reason, result.message = RunReason.LEDGER_UNAVAILABLE, str(exc)
            return self._finish(result)
        if not pending:
            result.reason = RunReason.ALREADY_ALERTED
            result.message = f"Every non-compliant STAFF member already received {tier}"
            return self._finish(result)

        tasks = [NotificationTask(subject, tier, period, days) for subject in pending]
        batch_plan = plan(len(tasks), self.config.volume_rules)
        logger.info(
            "Dispatching %d %s reminders (batch size %d)", len(tasks), tier, batch_plan.batch_size,
        )

        self._enter(RunState.DISPATCHING)
        started = self._clock()
        report = self.dispatcher.dispatch(tasks, batch_plan, cancel)

        self._enter(RunState.AGGREGATING)
        result.outcomes = report.outcomes
        result.alerts_recorded = report.recorded
        result.metrics = aggregate(
            report.outcomes,
            total_time_ms=max(0, round((self._clock() - started) * 1000)),
            batch_durations_ms=report.batch_durations_ms,
        )
        result.alarm = check_alarms(result.metrics, self.config.alarms)
        self._log_alarm(result.alarm, result.metrics)

        if report.ledger_error is not None:
            result.reason, result.message = RunReason.LEDGER_UNAVAILABLE, report.ledger_error
            return self._finish(result)
        if report.cancelled:
            result.reason, result.message = RunReason.CANCELLED, "Run cancelled before all reminders were sent"
            return self._finish(result)

        result.oversight_action = action
        if action != OversightAction.NONE:
            summary = OversightSummary(
                tier=tier,
                action=action,
                period=period,
                days_since_activation=days,
                roster=tuple(pending),
                staff_without_entries=len(candidates),
                total_staff=total_staff,
            )
            result.oversight_sent = self.oversight.notify(summary)

        result.message = f"{result.metrics.successful_emails} of {len(tasks)} {tier} reminders sent"
        return self._finish(result)

    def _log_alarm(self, alarm: AlarmLevel, metrics: RunMetrics) -> None:
        if alarm == AlarmLevel.CRITICAL:
            logger.error(
                "CRITICAL: reminder success rate %d%% (%d failed)", metrics.success_rate, metrics.failed_emails,
            )
        elif alarm == AlarmLevel.WARNING:
            logger.warning(
                "WARNING: reminder success rate %d%% (%d failed)", metrics.success_rate, metrics.failed_emails,
            )

    # -- status -------------------------------------------------------------

    def status(self) -> StatusReport:
        """Read-only snapshot of the active period; raises ``NoActivePeriod``."""
        period = self.compliance.active_period()
        if period is None:
            raise NoActivePeriod("No active period found")

        evaluation = evaluate(self._now(), period.activated_at, self.config.thresholds)
        recorded = self.ledger.tier_counts(period.id)
        tier_counts = {str(tier): recorded.get(str(tier), 0) for tier in Tier}
        without = len(self.compliance.non_compliant_subjects(period))
        total = self.compliance.total_subjects()

        return StatusReport(
            period=period,
            days_since_activation=evaluation.days_since_activation,
            tier_counts=tier_counts,
            staff_without_entries=without,
            total_staff=total,
            compliance_rate=compliance_rate(total, without),
            next_tier=evaluation.next_tier,
            next_tier_due_in=evaluation.next_tier_due_in,
        )
