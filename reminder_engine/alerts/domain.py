"""Read-only views of the store consumed by a reminder run."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from reminder_engine.alerts.tiers import OversightAction, Tier


@dataclass(frozen=True, slots=True)
class Period:
    id: UUID
    year: int
    semester: str
    activated_at: datetime
    is_active: bool = True

    @property
    def name(self) -> str:
        return f"{self.year} - {self.semester}"


@dataclass(frozen=True, slots=True)
class Subject:
    """A staff member eligible for reminders."""

    id: UUID
    name: str
    email: str
    grade: str | None = None


@dataclass(frozen=True, slots=True)
class NotificationTask:
    subject: Subject
    tier: Tier
    period: Period
    days_since_activation: int


@dataclass(frozen=True, slots=True)
class OversightSummary:
    """Roster report sent to the oversight recipients on COPY/ESCALATE tiers."""

    tier: Tier
    action: OversightAction
    period: Period
    days_since_activation: int
    roster: tuple[Subject, ...]
    staff_without_entries: int
    total_staff: int

    @property
    def compliance_rate(self) -> int:
        return compliance_rate(self.total_staff, self.staff_without_entries)


def compliance_rate(total: int, without: int) -> int:
    """Percentage of *total* staff with entries; 0 when there is no staff."""
    if total <= 0:
        return 0
    return round((total - without) / total * 100)
