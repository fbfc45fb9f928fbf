"""
Pydantic models for Peer Verification API requests and responses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from peerverify.records import AssessmentState


# =============================================================================
# Request Models
# =============================================================================


class CreateCompetencyRequest(BaseModel):
    """Request to add a competency to the catalog (administrator only)."""

    name: str = Field(..., description="Short name of the competency")
    description: str = Field(..., description="What holding the competency means")
    category: str = Field(..., description="Grouping used to browse the catalog")
    required_assessments: int = Field(
        ...,
        description="Assessors a record accepts before it is ready to finalize"
    )


class SubmitScoreRequest(BaseModel):
    """Request to score a subject's assessment."""

    # Range is enforced by the engine so the refusal carries its error kind
    score: int = Field(..., description="Score from 0 to 100")


class TriggerFinalizationRequest(BaseModel):
    """Request to manually trigger finalization of ready assessments."""

    dry_run: bool = Field(
        default=False,
        description="Only list the assessments that would be finalized"
    )


# =============================================================================
# Response Models
# =============================================================================


class ParticipantResponse(BaseModel):
    """Response containing a participant."""

    identity: str
    reputation: int
    total_assessments_given: int
    invalid_assessments_given: int
    registered_at: int

    class Config:
        from_attributes = True


class ReputationResponse(BaseModel):
    """A participant's global reputation."""

    identity: str
    reputation: int


class SkillReputationResponse(BaseModel):
    """A participant's reputation as an assessor of one competency."""

    identity: str
    competency_id: int
    reputation: int = 0
    assessments_given: int = 0
    valid_assessments_given: int = 0

    class Config:
        from_attributes = True


class CompetencyResponse(BaseModel):
    """Response containing a competency."""

    id: int
    name: str
    description: str
    category: str
    required_assessments: int
    created_by: str
    created_at: int

    class Config:
        from_attributes = True


class NextCompetencyIdResponse(BaseModel):
    next_id: int


class AssessmentResponse(BaseModel):
    """Response containing an assessment record."""

    competency_id: int
    subject: str
    state: AssessmentState

    assessors: List[str]
    scores: List[int]

    mean_score: int
    standard_deviation: int

    verified: bool
    finalized: bool

    opened_at: int
    finalized_at: Optional[int] = None

    class Config:
        from_attributes = True


class AssessorCountResponse(BaseModel):
    competency_id: int
    subject: str
    assessor_count: int


class ReputationUpdateResponse(BaseModel):
    """A reputation change applied at finalize time."""

    participant: str
    valid: bool
    delta: int

    class Config:
        from_attributes = True


class FinalizeResponse(BaseModel):
    """Response from finalizing an assessment."""

    competency_id: int
    subject: str
    verified: bool
    mean_score: int
    standard_deviation: int
    finalized_at: int
    updates: List[ReputationUpdateResponse]

    class Config:
        from_attributes = True


class ReadyAssessment(BaseModel):
    competency_id: int
    subject: str


class FinalizationResultResponse(BaseModel):
    """Response from a finalization run."""

    success: bool
    finalized: int
    verified: int
    rejected: int
    duration_seconds: float
    errors: List[str] = Field(default_factory=list)
    pending: List[ReadyAssessment] = Field(default_factory=list)
    finalized_at: datetime


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    database_connected: bool
    participants_count: int = 0
    competencies_count: int = 0
    open_assessments_count: int = 0
    scheduler_running: bool = False
