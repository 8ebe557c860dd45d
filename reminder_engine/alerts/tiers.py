"""Reminder tiers and the oversight action bound to each of them."""
from __future__ import annotations

from enum import StrEnum


class OversightAction(StrEnum):
    NONE = "none"
    COPY = "copy"
    ESCALATE = "escalate"


class Tier(StrEnum):
    """Escalation level, ordered by its day threshold."""

    FIRST = "FIRST_REMINDER"
    SECOND = "SECOND_REMINDER"
    THIRD = "THIRD_REMINDER"
    FINAL = "FINAL_REMINDER"

    @property
    def threshold(self) -> int:
        return DEFAULT_THRESHOLDS[self]

    @property
    def oversight(self) -> OversightAction:
        return _OVERSIGHT[self]


DEFAULT_THRESHOLDS: dict[Tier, int] = {
    Tier.FIRST: 3,
    Tier.SECOND: 7,
    Tier.THIRD: 14,
    Tier.FINAL: 21,
}

_OVERSIGHT: dict[Tier, OversightAction] = {
    Tier.FIRST: OversightAction.NONE,
    Tier.SECOND: OversightAction.COPY,
    Tier.THIRD: OversightAction.COPY,
    Tier.FINAL: OversightAction.ESCALATE,
}
