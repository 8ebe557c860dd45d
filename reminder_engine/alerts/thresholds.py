"""Day-threshold evaluation for the active period.

A tier is due only on the exact day its threshold is reached.  A run
missed on that day skips the tier for the rest of the period; there is
no catch-up.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from reminder_engine.alerts.tiers import DEFAULT_THRESHOLDS, Tier

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True, slots=True)
class ThresholdEvaluation:
    days_since_activation: int
    due_tier: Tier | None
    next_tier: Tier | None
    next_tier_due_in: int | None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_since(now: datetime, activated_at: datetime) -> int:
    """Whole days elapsed since *activated_at*; negative deltas clamp to 0."""
    delta = _as_utc(now) - _as_utc(activated_at)
    if delta < timedelta(0):
        return 0
    return delta // _ONE_DAY


def evaluate(
    now: datetime,
    activated_at: datetime,
    thresholds: Mapping[Tier, int] | None = None,
) -> ThresholdEvaluation:
    """Return the elapsed day count, the tier due today and the next tier."""
    thresholds = thresholds or DEFAULT_THRESHOLDS
    clock_skewed = _as_utc(now) < _as_utc(activated_at)
    days = days_since(now, activated_at)

    ordered = sorted(thresholds.items(), key=lambda item: item[1])
    due_tier = None
    if not clock_skewed:
        due_tier = next((tier for tier, day in ordered if day == days), None)

    upcoming = next(((tier, day) for tier, day in ordered if day > days), None)
    next_tier, next_due_in = (upcoming[0], upcoming[1] - days) if upcoming else (None, None)

    return ThresholdEvaluation(
        days_since_activation=days,
        due_tier=due_tier,
        next_tier=next_tier,
        next_tier_due_in=next_due_in,
    )
