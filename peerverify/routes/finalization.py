"""
API routes for triggering and monitoring automatic finalization.
"""

from datetime import datetime, UTC
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Header
from sqlalchemy.orm import Session

from peerverify.config import get_settings
from peerverify.database import get_db
from peerverify.engine import AssessmentEngine
from peerverify.models import (
    FinalizationResultResponse, ReadyAssessment, TriggerFinalizationRequest
)
from peerverify.scheduler import finalize_ready_assessments, get_scheduler


router = APIRouter(prefix="/finalization", tags=["Finalization"])

settings = get_settings()


@router.post("/run", response_model=FinalizationResultResponse)
def trigger_finalization(
    request: TriggerFinalizationRequest,
    db: Session = Depends(get_db),
    x_api_key: Optional[str] = Header(default=None)
):
    """
    Finalize every assessment that has collected its required scores.

    In production this normally runs on the scheduler; this endpoint
    runs it on demand. Requires API key if configured.
    """
    if settings.api_key and x_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")

    if request.dry_run:
        pending = [
            ReadyAssessment(competency_id=competency_id, subject=subject)
            for competency_id, subject in AssessmentEngine(db).ready_for_finalization()
        ]
        return FinalizationResultResponse(
            success=True,
            finalized=0,
            verified=0,
            rejected=0,
            duration_seconds=0.0,
            pending=pending,
            finalized_at=datetime.now(UTC),
        )

    result = finalize_ready_assessments(db)

    return FinalizationResultResponse(
        success=result["success"],
        finalized=result["finalized"],
        verified=result["verified"],
        rejected=result["rejected"],
        duration_seconds=result["duration_seconds"],
        errors=result["errors"],
        finalized_at=datetime.fromisoformat(result["finalized_at"])
    )


@router.get("/status")
def get_finalization_status():
    """Get the status of the finalization scheduler."""
    return get_scheduler().get_status()
