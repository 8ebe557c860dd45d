"""Exception taxonomy for a reminder run.

``TransportFailure`` and ``DeliveryTimeout`` never escape the retrying
sender; they are folded into ``DispatchOutcome.error``.  ``DuplicateAlert``
is read as "already alerted".  ``LedgerUnavailable`` and
``ComplianceSourceUnavailable`` abort the whole run.
"""
from __future__ import annotations


class ReminderEngineError(Exception):
    """Base class for every error raised by the engine."""


class NoActivePeriod(ReminderEngineError):
    """No period is currently active; a period must be activated first."""


class TransportFailure(ReminderEngineError):
    """A single delivery attempt failed."""


class DeliveryTimeout(TransportFailure):
    """A single delivery attempt exceeded its timeout."""

    def __init__(self, message: str = "Timeout") -> None:
        super().__init__(message)


class DuplicateAlert(ReminderEngineError):
    """An alert record already exists for (subject, period, tier)."""


class LedgerUnavailable(ReminderEngineError):
    """The alert ledger could not be read or written."""


class ComplianceSourceUnavailable(ReminderEngineError):
    """The list of non-compliant subjects could not be loaded."""
