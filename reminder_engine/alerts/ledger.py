"""Alert ledger and the idempotency gate in front of it.

The ledger is the only shared mutable resource of a run.  Idempotency
rests on the store's unique constraint over (subject, period, tier): a
second insert for the same key raises ``DuplicateAlert``, which the gate
reads as "already alerted" instead of an error.

Known window: the record is written after the send is confirmed.  A crash
between the two leaves no record, so the next run sends that reminder
again.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from reminder_engine.alerts.domain import NotificationTask, Period, Subject
from reminder_engine.alerts.tiers import Tier
from reminder_engine.core.errors import DuplicateAlert, LedgerUnavailable
from reminder_engine.db.repositories import AlertRecordRepository

logger = logging.getLogger(__name__)

UNIQUE_KEY = "uq_alert_records_member_period_tier"


def _is_duplicate(exc: IntegrityError) -> bool:
    """True when *exc* violates the (subject, period, tier) unique key.

    PostgreSQL names the constraint in the driver diagnostics; SQLite only
    lists the columns in its message.
    """
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint is not None:
        return constraint == UNIQUE_KEY
    message = str(exc.orig)
    return UNIQUE_KEY in message or message.startswith("UNIQUE constraint failed: alert_records.")


class AlertLedger(Protocol):
    def exists(self, subject_id: UUID, period_id: UUID, tier: Tier) -> bool: ...

    def insert(
        self,
        subject_id: UUID,
        period_id: UUID,
        tier: Tier,
        sent_at: datetime,
        days_since_activation: int,
    ) -> None: ...

    def tier_counts(self, period_id: UUID) -> dict[str, int]: ...


class SqlAlertLedger:
    """``AlertLedger`` stored in the ``alert_records`` table.

    Every insert is committed on its own so a confirmed send is durable
    before the next recipient is processed.
    """

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.records = AlertRecordRepository(db_session)

    def exists(self, subject_id: UUID, period_id: UUID, tier: Tier) -> bool:
        try:
            return self.records.exists(subject_id, period_id, str(tier))
        except SQLAlchemyError as exc:
            raise LedgerUnavailable(f"Alert ledger lookup failed: {exc}") from exc

    def insert(
        self,
        subject_id: UUID,
        period_id: UUID,
        tier: Tier,
        sent_at: datetime,
        days_since_activation: int,
    ) -> None:
        try:
            self.records.create(
                staff_member_id=subject_id,
                time_period_id=period_id,
                tier=str(tier),
                sent_at=sent_at,
                days_since_activation=days_since_activation,
                email_sent=True,
            )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not _is_duplicate(exc):
                raise LedgerUnavailable(f"Alert ledger write rejected: {exc.orig}") from exc
            raise DuplicateAlert(f"{tier} already recorded for subject {subject_id}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise LedgerUnavailable(f"Alert ledger write failed: {exc}") from exc

    def tier_counts(self, period_id: UUID) -> dict[str, int]:
        try:
            return self.records.count_by_tier(period_id)
        except SQLAlchemyError as exc:
            raise LedgerUnavailable(f"Alert ledger count failed: {exc}") from exc


class LedgerGate:
    """Filter candidates down to those not yet alerted, and record sends."""

    def __init__(self, ledger: AlertLedger) -> None:
        self.ledger = ledger

    def filter_unalerted(self, candidates: list[Subject], period: Period, tier: Tier) -> list[Subject]:
        """Return *candidates* without an existing record for (*period*, *tier*).

        Order is preserved and a subject listed twice is kept once.
        Raises ``LedgerUnavailable`` when the ledger cannot be read.
        """
        seen: set[UUID] = set()
        pending: list[Subject] = []
        for subject in candidates:
            if subject.id in seen:
                continue
            seen.add(subject.id)
            if self.ledger.exists(subject.id, period.id, tier):
                continue
            pending.append(subject)

        logger.info(
            "%d of %d candidates still to alert for %s in %s",
            len(pending), len(seen), tier, period.name,
        )
        return pending

    def record(self, task: NotificationTask, sent_at: datetime) -> bool:
        """Write the ledger entry for a delivered *task*.

        Returns False when another run already recorded the same key.
        """
        try:
            self.ledger.insert(
                task.subject.id,
                task.period.id,
                task.tier,
                sent_at,
                task.days_since_activation,
            )
        except DuplicateAlert:
            logger.info("Subject %s already recorded for %s; treating as alerted", task.subject.id, task.tier)
            return False
        return True
