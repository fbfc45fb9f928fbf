"""
API routes for the competency catalog.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from peerverify.catalog import CompetencyCatalog
from peerverify.database import get_db
from peerverify.models import (
    CompetencyResponse, CreateCompetencyRequest, NextCompetencyIdResponse
)
from peerverify.routes.common import get_caller, unwrap


router = APIRouter(prefix="/competencies", tags=["Competencies"])


@router.post("/", response_model=CompetencyResponse, status_code=201)
def create_competency(
    request: CreateCompetencyRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
) -> CompetencyResponse:
    """
    Add a competency to the catalog.

    Only the administrator identity may create competencies. Ids are
    handed out in order starting from zero.
    """
    competency = unwrap(
        CompetencyCatalog(db).create(
            caller,
            name=request.name,
            description=request.description,
            category=request.category,
            required_assessments=request.required_assessments,
        )
    )
    return CompetencyResponse.model_validate(competency)


@router.get("/next-id", response_model=NextCompetencyIdResponse)
def get_next_competency_id(db: Session = Depends(get_db)) -> NextCompetencyIdResponse:
    """Id the next created competency will receive."""
    return NextCompetencyIdResponse(next_id=CompetencyCatalog(db).next_competency_id())


@router.get("/{competency_id}", response_model=CompetencyResponse)
def get_competency(
    competency_id: int,
    db: Session = Depends(get_db)
) -> CompetencyResponse:
    """Get a competency by id."""
    competency = CompetencyCatalog(db).get(competency_id)
    if not competency:
        raise HTTPException(
            status_code=404,
            detail={"error": "invalid_competency_id", "detail": str(competency_id)}
        )
    return CompetencyResponse.model_validate(competency)
