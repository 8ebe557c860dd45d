from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func, text as sql_text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reminder_engine.db.base import Base


class TimePeriod(Base):
    """A reporting period (year + semester) staff must submit entries for.

    At most one row has ``is_active = true``; ``activated_at`` is the
    reference point for every reminder threshold.
    """

    __tablename__ = "time_periods"
    __table_args__ = (UniqueConstraint("year", "semester", name="uq_time_periods_year_semester"),)

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    semester: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sql_text("false"), index=True
    )
    activated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    time_entries: Mapped[list[TimeEntry]] = relationship(back_populates="time_period")
    alert_records: Mapped[list[AlertRecord]] = relationship(back_populates="time_period")


class StaffMember(Base):
    __tablename__ = "staff_members"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    grade: Mapped[str | None] = mapped_column(String(32), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="STAFF", server_default=sql_text("'STAFF'"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=sql_text("true"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    time_entries: Mapped[list[TimeEntry]] = relationship(back_populates="staff_member")
    alert_records: Mapped[list[AlertRecord]] = relationship(back_populates="staff_member")


class TimeEntry(Base):
    __tablename__ = "time_entries"
    __table_args__ = (Index("ix_time_entries_period_member", "time_period_id", "staff_member_id"),)

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    staff_member_id: Mapped[UUID] = mapped_column(ForeignKey("staff_members.id", ondelete="CASCADE"), nullable=False)
    time_period_id: Mapped[UUID] = mapped_column(ForeignKey("time_periods.id", ondelete="CASCADE"), nullable=False)
    hours: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    staff_member: Mapped[StaffMember] = relationship(back_populates="time_entries")
    time_period: Mapped[TimePeriod] = relationship(back_populates="time_entries")


class AlertRecord(Base):
    """Idempotency ledger: one row per (staff member, period, tier).

    Written only after the reminder was delivered.  Never updated or
    deleted by the engine; the unique constraint is what makes concurrent
    runs safe.
    """

    __tablename__ = "alert_records"
    __table_args__ = (
        UniqueConstraint("staff_member_id", "time_period_id", "tier", name="uq_alert_records_member_period_tier"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    staff_member_id: Mapped[UUID] = mapped_column(ForeignKey("staff_members.id", ondelete="CASCADE"), nullable=False)
    time_period_id: Mapped[UUID] = mapped_column(ForeignKey("time_periods.id", ondelete="CASCADE"), nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    days_since_activation: Mapped[int] = mapped_column(Integer, nullable=False)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=sql_text("true"))
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    staff_member: Mapped[StaffMember] = relationship(back_populates="alert_records")
    time_period: Mapped[TimePeriod] = relationship(back_populates="alert_records")
