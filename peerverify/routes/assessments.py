"""
API routes for requesting, scoring and finalizing assessments.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from peerverify.database import get_db
from peerverify.engine import AssessmentEngine
from peerverify.models import (
    AssessmentResponse, AssessorCountResponse, FinalizeResponse,
    ReadyAssessment, SubmitScoreRequest
)
from peerverify.routes.common import get_caller, unwrap


router = APIRouter(prefix="/assessments", tags=["Assessments"])


# =============================================================================
# Lifecycle
# =============================================================================


@router.post("/{competency_id}", response_model=AssessmentResponse, status_code=201)
def request_assessment(
    competency_id: int,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
) -> AssessmentResponse:
    """
    Ask peers to assess the caller on a competency.

    A participant can only have one assessment per competency.
    """
    snapshot = unwrap(AssessmentEngine(db).open(competency_id, caller))
    return AssessmentResponse.model_validate(snapshot)


@router.post("/{competency_id}/{subject}/scores", response_model=AssessmentResponse)
def submit_score(
    competency_id: int,
    subject: str,
    request: SubmitScoreRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
) -> AssessmentResponse:
    """
    Score a subject's assessment as the caller.

    Each assessor scores an assessment once, never their own, and an
    assessment takes at most twenty scores.
    """
    snapshot = unwrap(
        AssessmentEngine(db).submit(competency_id, subject, caller, request.score)
    )
    return AssessmentResponse.model_validate(snapshot)


@router.post("/{competency_id}/{subject}/finalize", response_model=FinalizeResponse)
def finalize_assessment(
    competency_id: int,
    subject: str,
    db: Session = Depends(get_db)
) -> FinalizeResponse:
    """
    Decide an assessment and settle its assessors' reputation.

    Needs at least three scores. The subject is verified when the mean
    score reaches 70; each assessor whose score is within 15 of the mean
    gains reputation, the others lose some.
    """
    outcome = unwrap(AssessmentEngine(db).finalize(competency_id, subject))
    return FinalizeResponse.model_validate(outcome)


# =============================================================================
# Queries
# =============================================================================


@router.get("/ready", response_model=List[ReadyAssessment])
def get_ready_assessments(db: Session = Depends(get_db)) -> List[ReadyAssessment]:
    """Open assessments that have collected their required scores."""
    return [
        ReadyAssessment(competency_id=competency_id, subject=subject)
        for competency_id, subject in AssessmentEngine(db).ready_for_finalization()
    ]


@router.get("/{competency_id}/{subject}", response_model=AssessmentResponse)
def get_assessment(
    competency_id: int,
    subject: str,
    db: Session = Depends(get_db)
) -> AssessmentResponse:
    """Get an assessment record with its scores and statistics."""
    snapshot = unwrap(AssessmentEngine(db).get_record(competency_id, subject))
    return AssessmentResponse.model_validate(snapshot)


@router.get("/{competency_id}/{subject}/count", response_model=AssessorCountResponse)
def get_assessor_count(
    competency_id: int,
    subject: str,
    db: Session = Depends(get_db)
) -> AssessorCountResponse:
    """Number of assessors who have scored an assessment so far."""
    count = unwrap(AssessmentEngine(db).get_assessor_count(competency_id, subject))
    return AssessorCountResponse(
        competency_id=competency_id,
        subject=subject,
        assessor_count=count
    )
