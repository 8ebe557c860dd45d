"""Oversight escalation: who else hears about persistent non-compliance.

SECOND and THIRD reminders copy the oversight recipients on a roster
report; the FINAL reminder escalates it.  The report is sent at most once
per run and is not tracked in the alert ledger: a failed report is logged
and left for the next tier.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from reminder_engine.alerts.domain import OversightSummary
from reminder_engine.alerts.tiers import OversightAction, Tier
from reminder_engine.notification.sender import RetryingSender
from reminder_engine.notification.templates import TemplateResolver
from reminder_engine.notification.transport import Notification

logger = logging.getLogger(__name__)


def oversight_action(tier: Tier) -> OversightAction:
    return tier.oversight


class OversightNotifier:
    def __init__(
        self,
        sender: RetryingSender,
        resolver: TemplateResolver,
        recipients: Sequence[str],
    ) -> None:
        self.sender = sender
        self.resolver = resolver
        self.recipients = tuple(recipients)

    def notify(self, summary: OversightSummary) -> bool:
        """Send *summary* to every oversight recipient.

        Returns True only when every recipient received it.
        """
        if summary.action == OversightAction.NONE:
            return False
        if not self.recipients:
            logger.warning("No oversight recipients configured; %s report not sent", summary.tier)
            return False

        message = self.resolver.render_oversight(summary)
        delivered = 0
        for index, recipient in enumerate(self.recipients, start=1):
            result = self.sender.deliver(
                Notification(recipient=recipient, subject=message.subject, body=message.body),
                ref=f"oversight recipient {index}",
            )
            if result.success:
                delivered += 1
            else:
                logger.error("Oversight %s report to recipient %d failed: %s", summary.action, index, result.error)

        logger.info(
            "Oversight %s report for %s delivered to %d/%d recipients",
            summary.action, summary.tier, delivered, len(self.recipients),
        )
        return delivered == len(self.recipients)
