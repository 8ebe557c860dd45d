#!/usr/bin/env python3
"""Trigger one reminder run and print its metrics.

Meant for cron or a manual check; the run is idempotent per day and tier,
so calling it twice sends nothing new.

Usage:
    python scripts/run_alerts.py             # uses DATABASE_URL / SMTP_* from env / .env
    python scripts/run_alerts.py --status    # report only, sends nothing
"""
from __future__ import annotations

import argparse
import json
import sys

from reminder_engine.alerts.compliance import SqlComplianceSource
from reminder_engine.alerts.config import AlertConfig
from reminder_engine.alerts.ledger import SqlAlertLedger
from reminder_engine.alerts.orchestrator import RunOrchestrator
from reminder_engine.core.errors import NoActivePeriod
from reminder_engine.core.logging import setup_logging
from reminder_engine.core.settings import get_settings
from reminder_engine.db.session import get_session_factory
from reminder_engine.notification.templates import TemplateResolver
from reminder_engine.notification.transport import SmtpTransport


def _print_metrics(metrics: dict) -> None:
    print("Performance metrics:")
    print(f"  Total emails:           {metrics['total_emails']}")
    print(f"  Successful emails:      {metrics['successful_emails']}")
    print(f"  Failed emails:          {metrics['failed_emails']}")
    print(f"  Success rate:           {metrics['success_rate']}%")
    print(f"  Total time:             {metrics['total_time_ms']}ms")
    print(f"  Average time per email: {metrics['average_time_per_email']}ms")
    print(f"  Average time per batch: {metrics['average_time_per_batch']}ms")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--status", action="store_true", help="print the status report and exit")
    args = parser.parse_args(argv)

    setup_logging()
    settings = get_settings()

    with get_session_factory()() as session:
        orchestrator = RunOrchestrator(
            AlertConfig.from_settings(settings),
            SqlComplianceSource(session),
            SqlAlertLedger(session),
            SmtpTransport(
                settings.smtp_host,
                settings.smtp_port,
                username=settings.smtp_user,
                password=settings.smtp_password,
                from_address=settings.smtp_from,
                sender_name=settings.smtp_sender_name,
                timeout=settings.alert_attempt_timeout_seconds,
            ),
            TemplateResolver(app_url=settings.app_url),
        )

        if args.status:
            try:
                print(json.dumps(orchestrator.status().to_dict(), indent=2, default=str))
            except NoActivePeriod as exc:
                print(exc, file=sys.stderr)
                return 1
            return 0

        result = orchestrator.run_once()
        session.commit()

    payload = result.to_dict()
    print(f"{payload['reason']}: {payload['message']}")
    if payload["metrics"]:
        _print_metrics(payload["metrics"])
        print(f"  Alarm:                  {payload['alarm']}")
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
