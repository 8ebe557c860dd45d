"""Retrying notification sender.

Each delivery gets up to ``max_retries`` attempts.  An attempt that runs
past ``attempt_timeout`` seconds counts as timed out; a fixed
``retry_delay`` separates attempts and no delay follows the last one.

A timed-out transport call cannot be interrupted, so the sender waits for
it to settle before doing anything else: the transport's own socket
timeout bounds that wait.  Attempts never overlap, and a call that
completes late counts as delivered instead of being retried.

``send`` never raises: rendering and transport errors are captured in the
returned ``DispatchOutcome`` so the dispatcher always gets a result.

Safety: recipient addresses are never logged, only subject ids.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

from reminder_engine.alerts.domain import NotificationTask, Subject
from reminder_engine.alerts.tiers import Tier
from reminder_engine.core.errors import DeliveryTimeout
from reminder_engine.notification.templates import TemplateResolver
from reminder_engine.notification.transport import Notification, NotificationTransport

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "Timeout"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of delivering one notification, across all its attempts."""

    success: bool
    attempts: int
    latency_ms: int
    error: str | None = None


@dataclass(frozen=True)
class DispatchOutcome:
    subject: Subject
    tier: Tier
    success: bool
    latency_ms: int
    attempts: int = 0
    error: str | None = None


def _reason(exc: BaseException) -> str:
    if isinstance(exc, (TimeoutError, DeliveryTimeout)):
        return TIMEOUT_REASON
    return str(exc) or type(exc).__name__


class _AttemptTimedOut(DeliveryTimeout):
    """Attempt exceeded its timeout; ``pending`` is the call still running."""

    def __init__(self, pending: Future) -> None:
        super().__init__()
        self.pending = pending


# ---------------------------------------------------------------------------
# RetryingSender
# ---------------------------------------------------------------------------

class RetryingSender:
    """Wrap a ``NotificationTransport`` with retries and a per-attempt timeout."""

    def __init__(
        self,
        transport: NotificationTransport,
        resolver: TemplateResolver,
        *,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        attempt_timeout: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.transport = transport
        self.resolver = resolver
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.attempt_timeout = attempt_timeout
        self._sleep = sleep
        self._clock = clock
        self._executor: ThreadPoolExecutor | None = None

    # -- single attempt -----------------------------------------------------

    def _attempt(self, notification: Notification) -> None:
        """Run one transport call, bounded by ``attempt_timeout``.

        Raises ``_AttemptTimedOut`` carrying the still-running call.
        """
        if self.attempt_timeout is None or self.attempt_timeout <= 0:
            self.transport.deliver(notification)
            return

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notification-attempt")
        future = self._executor.submit(self.transport.deliver, notification)
        try:
            future.result(timeout=self.attempt_timeout)
        except TimeoutError as exc:
            raise _AttemptTimedOut(future) from exc

    @staticmethod
    def _settle(pending: Future) -> bool:
        """Wait for a timed-out call to finish; True if it delivered after all."""
        try:
            pending.result()
        except Exception:
            return False
        return True

    # -- delivery with retries ---------------------------------------------

    def deliver(self, notification: Notification, ref: str) -> DeliveryResult:
        """Deliver *notification*, retrying on any failure.

        *ref* identifies the delivery in logs in place of the address.
        """
        started = self._clock()
        last_error: str | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                self._attempt(notification)
            except _AttemptTimedOut as exc:
                last_error = TIMEOUT_REASON
                logger.warning("Delivery timed out for %s attempt %d; waiting for it to settle", ref, attempt)
                if self._settle(exc.pending):
                    latency = self._elapsed_ms(started)
                    logger.info("Timed-out attempt %d for %s completed late (%d ms)", attempt, ref, latency)
                    return DeliveryResult(success=True, attempts=attempt, latency_ms=latency)
            except Exception as exc:
                last_error = _reason(exc)
                logger.warning("Delivery error for %s attempt %d: %s", ref, attempt, last_error)
            else:
                latency = self._elapsed_ms(started)
                logger.info("Delivered notification for %s (attempt %d, %d ms)", ref, attempt, latency)
                return DeliveryResult(success=True, attempts=attempt, latency_ms=latency)

            if attempt < self.max_retries:
                self._sleep(self.retry_delay)

        latency = self._elapsed_ms(started)
        logger.error("Delivery failed for %s after %d attempts", ref, self.max_retries)
        return DeliveryResult(success=False, attempts=self.max_retries, latency_ms=latency, error=last_error)

    def send(self, task: NotificationTask) -> DispatchOutcome:
        """Render and deliver the reminder for *task*."""
        sid = str(task.subject.id)
        started = self._clock()
        try:
            message = self.resolver.render(task.tier, task.subject, task.period, task.days_since_activation)
        except Exception as exc:
            logger.error("Could not render %s for subject %s: %s", task.tier, sid, exc)
            return DispatchOutcome(
                subject=task.subject,
                tier=task.tier,
                success=False,
                latency_ms=self._elapsed_ms(started),
                error=f"Render failed: {exc}",
            )

        notification = Notification(recipient=task.subject.email, subject=message.subject, body=message.body)
        result = self.deliver(notification, ref=f"subject {sid}")
        return DispatchOutcome(
            subject=task.subject,
            tier=task.tier,
            success=result.success,
            latency_ms=self._elapsed_ms(started),
            attempts=result.attempts,
            error=result.error,
        )

    def _elapsed_ms(self, started: float) -> int:
        return max(0, round((self._clock() - started) * 1000))
