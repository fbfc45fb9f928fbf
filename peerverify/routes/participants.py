"""
API routes for participant registration and reputation.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from peerverify.database import get_db
from peerverify.engine import AssessmentEngine
from peerverify.models import (
    ParticipantResponse, ReputationResponse, SkillReputationResponse
)
from peerverify.registry import ParticipantRegistry
from peerverify.routes.common import get_caller, unwrap


router = APIRouter(prefix="/participants", tags=["Participants"])


# =============================================================================
# Registration
# =============================================================================


@router.post("/", response_model=ParticipantResponse, status_code=201)
def register_participant(
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
) -> ParticipantResponse:
    """
    Register the caller as a participant.

    Only registered participants can request assessments or score
    other participants.
    """
    participant = unwrap(ParticipantRegistry(db).register(caller))
    return ParticipantResponse.model_validate(participant)


@router.get("/{identity}", response_model=ParticipantResponse)
def get_participant(
    identity: str,
    db: Session = Depends(get_db)
) -> ParticipantResponse:
    """Get a participant with their lifetime assessment counters."""
    participant = ParticipantRegistry(db).get(identity)
    if not participant:
        raise HTTPException(
            status_code=404,
            detail={"error": "not_registered", "detail": identity}
        )
    return ParticipantResponse.model_validate(participant)


# =============================================================================
# Reputation
# =============================================================================


@router.get("/{identity}/reputation", response_model=ReputationResponse)
def get_reputation(
    identity: str,
    db: Session = Depends(get_db)
) -> ReputationResponse:
    """
    Get a participant's global reputation.

    Reputation grows when the participant's scores agree with the final
    mean of the assessments they took part in, and shrinks otherwise.
    """
    reputation = unwrap(AssessmentEngine(db).get_reputation(identity))
    return ReputationResponse(identity=identity, reputation=reputation)


@router.get("/{identity}/reputation/{competency_id}", response_model=SkillReputationResponse)
def get_skill_reputation(
    identity: str,
    competency_id: int,
    db: Session = Depends(get_db)
) -> SkillReputationResponse:
    """Get a participant's reputation as an assessor of one competency."""
    skill = unwrap(AssessmentEngine(db).get_skill_reputation(identity, competency_id))
    return SkillReputationResponse.model_validate(skill)
