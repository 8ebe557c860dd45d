"""Batch dispatcher: paces a run's reminders through the sender.

Tasks are cut into consecutive batches of ``plan.batch_size`` and sent one
at a time.  ``delay_between_emails_ms`` follows every item except the last
of its batch; ``delay_between_batches_ms`` follows every batch except the
last.  Each confirmed send is recorded in the ledger before the next item
starts.

The run can be aborted through a ``threading.Event``: no new send starts
once it is set, and pending pauses end early.  Tasks never attempted are
reported as failed outcomes so every task still has exactly one outcome.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from reminder_engine.alerts.domain import NotificationTask
from reminder_engine.alerts.ledger import LedgerGate
from reminder_engine.core.errors import LedgerUnavailable
from reminder_engine.notification.planner import BatchPlan
from reminder_engine.notification.sender import DispatchOutcome, RetryingSender

logger = logging.getLogger(__name__)

CANCELLED_REASON = "Cancelled"
LEDGER_ABORT_REASON = "Aborted: alert ledger unavailable"


@dataclass
class DispatchReport:
    outcomes: list[DispatchOutcome] = field(default_factory=list)
    batch_durations_ms: list[int] = field(default_factory=list)
    recorded: int = 0
    cancelled: bool = False
    ledger_error: str | None = None

    @property
    def batch_count(self) -> int:
        return len(self.batch_durations_ms)


def _batches(tasks: Sequence[NotificationTask], size: int) -> list[Sequence[NotificationTask]]:
    size = max(size, 1)
    return [tasks[i:i + size] for i in range(0, len(tasks), size)]


class BatchDispatcher:
    """Send every task through *sender*, batch by batch."""

    def __init__(
        self,
        sender: RetryingSender,
        gate: LedgerGate,
        *,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.sender = sender
        self.gate = gate
        self._sleep = sleep
        self._clock = clock
        self._now = now

    def _pause(self, delay_ms: int, cancel: threading.Event | None) -> None:
        if delay_ms <= 0:
            return
        seconds = delay_ms / 1000
        if self._sleep is not None:
            self._sleep(seconds)
        elif cancel is not None:
            cancel.wait(seconds)
        else:
            time.sleep(seconds)

    def dispatch(
        self,
        tasks: Sequence[NotificationTask],
        plan: BatchPlan,
        cancel: threading.Event | None = None,
    ) -> DispatchReport:
        report = DispatchReport()
        if not tasks:
            return report

        batches = _batches(tasks, plan.batch_size)
        processed = 0
        stopped = False

        for batch_index, batch in enumerate(batches, start=1):
            if cancel is not None and cancel.is_set():
                report.cancelled = True
                break

            batch_started = self._clock()
            logger.info("Batch %d/%d: %d notifications", batch_index, len(batches), len(batch))

            for item_index, task in enumerate(batch):
                if cancel is not None and cancel.is_set():
                    report.cancelled = True
                    stopped = True
                    break

                outcome = self.sender.send(task)
                report.outcomes.append(outcome)
                processed += 1

                if outcome.success:
                    try:
                        if self.gate.record(task, self._now()):
                            report.recorded += 1
                    except LedgerUnavailable as exc:
                        logger.error("Alert ledger unavailable after sending to subject %s: %s", task.subject.id, exc)
                        report.ledger_error = str(exc)
                        stopped = True
                        break

                if item_index < len(batch) - 1:
                    self._pause(plan.delay_between_emails_ms, cancel)

            report.batch_durations_ms.append(max(0, round((self._clock() - batch_started) * 1000)))
            if stopped:
                break
            if batch_index < len(batches):
                self._pause(plan.delay_between_batches_ms, cancel)

        if processed < len(tasks):
            reason = LEDGER_ABORT_REASON if report.ledger_error else CANCELLED_REASON
            logger.warning("%d notifications not attempted: %s", len(tasks) - processed, reason)
            for task in tasks[processed:]:
                report.outcomes.append(
                    DispatchOutcome(subject=task.subject, tier=task.tier, success=False, latency_ms=0, error=reason)
                )

        return report
