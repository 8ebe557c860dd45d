"""Time-entry reminder routes.

GET /alerts/status reports progress for the active period without side
effects.  POST /alerts/run performs one reminder run synchronously; calling
it again the same day sends nothing new.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from reminder_engine.alerts.orchestrator import RunOrchestrator
from reminder_engine.core.errors import ComplianceSourceUnavailable, LedgerUnavailable, NoActivePeriod
from reminder_engine.api.deps import get_orchestrator

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("/status", summary="Reminder status for the active period")
def get_status(orchestrator: RunOrchestrator = Depends(get_orchestrator)):
    try:
        report = orchestrator.status()
    except NoActivePeriod as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (ComplianceSourceUnavailable, LedgerUnavailable) as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return report.to_dict()


@router.post("/run", summary="Run today's reminder check once")
def run_once(orchestrator: RunOrchestrator = Depends(get_orchestrator)):
    return orchestrator.run_once().to_dict()
