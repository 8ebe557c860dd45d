"""Compliance source: who still owes time entries for the active period.

The predicate lives here, not in the engine: a STAFF member is
non-compliant while they have no time entry recorded against the period.
Results are read fresh on every call and never cached across runs.
"""
from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reminder_engine.alerts.domain import Period, Subject
from reminder_engine.core.errors import ComplianceSourceUnavailable
from reminder_engine.db.models import StaffMember, TimePeriod
from reminder_engine.db.repositories import StaffMemberRepository, TimePeriodRepository

logger = logging.getLogger(__name__)


class ComplianceSource(Protocol):
    def active_period(self) -> Period | None: ...

    def non_compliant_subjects(self, period: Period) -> list[Subject]: ...

    def total_subjects(self) -> int: ...


def _to_period(row: TimePeriod) -> Period:
    return Period(
        id=row.id,
        year=row.year,
        semester=row.semester,
        activated_at=row.activated_at,
        is_active=row.is_active,
    )


def _to_subject(row: StaffMember) -> Subject:
    return Subject(id=row.id, name=row.name, email=row.email, grade=row.grade)


class SqlComplianceSource:
    """``ComplianceSource`` backed by the ``time_periods`` / ``time_entries`` tables."""

    def __init__(self, db_session: Session) -> None:
        self.periods = TimePeriodRepository(db_session)
        self.staff = StaffMemberRepository(db_session)

    def active_period(self) -> Period | None:
        try:
            row = self.periods.get_active()
        except SQLAlchemyError as exc:
            raise ComplianceSourceUnavailable(f"Could not load active period: {exc}") from exc
        return _to_period(row) if row is not None else None

    def non_compliant_subjects(self, period: Period) -> list[Subject]:
        try:
            rows = self.staff.list_without_entries(period.id)
        except SQLAlchemyError as exc:
            raise ComplianceSourceUnavailable(f"Could not load non-compliant staff: {exc}") from exc
        logger.info("%d STAFF members without time entries for %s", len(rows), period.name)
        return [_to_subject(row) for row in rows]

    def total_subjects(self) -> int:
        try:
            return self.staff.count_active_staff()
        except SQLAlchemyError as exc:
            raise ComplianceSourceUnavailable(f"Could not count active staff: {exc}") from exc
