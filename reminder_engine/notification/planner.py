"""Adaptive batch planning for bulk reminder sends.

Bigger runs get bigger batches and longer pauses, which keeps the
aggregate send rate under what the SMTP relay tolerates before it starts
throttling or blacklisting the sender.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BatchPlan:
    batch_size: int
    delay_between_emails_ms: int
    delay_between_batches_ms: int


@dataclass(frozen=True, slots=True)
class VolumeRule:
    """Plan applied when the recipient count is at most ``max_recipients``.

    ``max_recipients=None`` marks the open-ended last rule.
    """

    max_recipients: int | None
    plan: BatchPlan


DEFAULT_VOLUME_RULES: tuple[VolumeRule, ...] = (
    VolumeRule(20, BatchPlan(batch_size=5, delay_between_emails_ms=1000, delay_between_batches_ms=3000)),
    VolumeRule(100, BatchPlan(batch_size=10, delay_between_emails_ms=1500, delay_between_batches_ms=4000)),
    VolumeRule(None, BatchPlan(batch_size=20, delay_between_emails_ms=2000, delay_between_batches_ms=5000)),
)


def plan(recipient_count: int, rules: Sequence[VolumeRule] = DEFAULT_VOLUME_RULES) -> BatchPlan:
    """Return the batch plan for *recipient_count* recipients.

    Always returns a plan, including for zero recipients.
    """
    if not rules:
        raise ValueError("at least one volume rule is required")

    count = max(recipient_count, 0)
    for rule in rules:
        if rule.max_recipients is None or count <= rule.max_recipients:
            return rule.plan
    return rules[-1].plan
