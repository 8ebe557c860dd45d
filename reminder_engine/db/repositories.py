from __future__ import annotations

from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reminder_engine.db import models

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def create(self, **kwargs) -> ModelT:
        entity = self.model(**kwargs)
        self.db.add(entity)
        self.db.flush()
        return entity


class TimePeriodRepository(BaseRepository[models.TimePeriod]):
    model = models.TimePeriod

    def get_active(self) -> models.TimePeriod | None:
        stmt = (
            select(models.TimePeriod)
            .where(models.TimePeriod.is_active.is_(True))
            .order_by(models.TimePeriod.activated_at.desc())
        )
        return self.db.execute(stmt).scalars().first()


class StaffMemberRepository(BaseRepository[models.StaffMember]):
    model = models.StaffMember

    def _active_staff(self):
        return (
            models.StaffMember.role == "STAFF",
            models.StaffMember.is_active.is_(True),
        )

    def list_without_entries(self, time_period_id: UUID) -> list[models.StaffMember]:
        """Active STAFF members with no time entry in *time_period_id*."""
        has_entry = (
            select(models.TimeEntry.id)
            .where(
                models.TimeEntry.staff_member_id == models.StaffMember.id,
                models.TimeEntry.time_period_id == time_period_id,
            )
            .exists()
        )
        stmt = (
            select(models.StaffMember)
            .where(*self._active_staff(), ~has_entry)
            .order_by(models.StaffMember.name, models.StaffMember.id)
        )
        return self.db.execute(stmt).scalars().all()

    def count_active_staff(self) -> int:
        stmt = select(func.count(models.StaffMember.id)).where(*self._active_staff())
        return self.db.execute(stmt).scalar_one()


class TimeEntryRepository(BaseRepository[models.TimeEntry]):
    model = models.TimeEntry


class AlertRecordRepository(BaseRepository[models.AlertRecord]):
    model = models.AlertRecord

    def exists(self, staff_member_id: UUID, time_period_id: UUID, tier: str) -> bool:
        stmt = select(models.AlertRecord.id).where(
            models.AlertRecord.staff_member_id == staff_member_id,
            models.AlertRecord.time_period_id == time_period_id,
            models.AlertRecord.tier == tier,
        )
        return self.db.execute(stmt).first() is not None

    def count_by_tier(self, time_period_id: UUID) -> dict[str, int]:
        stmt = (
            select(models.AlertRecord.tier, func.count(models.AlertRecord.id))
            .where(models.AlertRecord.time_period_id == time_period_id)
            .group_by(models.AlertRecord.tier)
        )
        return {tier: count for tier, count in self.db.execute(stmt).all()}
