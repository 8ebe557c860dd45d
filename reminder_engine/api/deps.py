"""FastAPI dependency injection: database sessions and the run orchestrator."""
from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from reminder_engine.alerts.compliance import SqlComplianceSource
from reminder_engine.alerts.config import AlertConfig
from reminder_engine.alerts.ledger import SqlAlertLedger
from reminder_engine.alerts.orchestrator import RunOrchestrator
from reminder_engine.core.settings import Settings, get_settings
from reminder_engine.db.session import get_session_factory
from reminder_engine.notification.templates import TemplateResolver
from reminder_engine.notification.transport import SmtpTransport


def get_db() -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_transport(settings: Settings = Depends(get_settings)) -> SmtpTransport:
    """Return the SMTP transport configured from the environment."""
    return SmtpTransport(
        settings.smtp_host,
        settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        from_address=settings.smtp_from,
        sender_name=settings.smtp_sender_name,
        timeout=settings.alert_attempt_timeout_seconds,
    )


def get_orchestrator(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    transport: SmtpTransport = Depends(get_transport),
) -> RunOrchestrator:
    """Return a RunOrchestrator bound to the current DB session."""
    return RunOrchestrator(
        AlertConfig.from_settings(settings),
        SqlComplianceSource(db),
        SqlAlertLedger(db),
        transport,
        TemplateResolver(app_url=settings.app_url),
    )
