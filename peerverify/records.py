"""
Assessment record state: contributions, derived statistics and outcome.

Functions here work on a single Assessment row and know nothing about
registration or the catalog; the engine checks those first.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from peerverify import statistics
from peerverify.database import Assessment, Contribution
from peerverify.errors import EngineError, ErrorKind


class AssessmentState(str, Enum):
    """Lifecycle of an assessment record."""
    UNOPENED = "unopened"
    OPEN = "open"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AssessmentSnapshot:
    """Read-only copy of an assessment record."""
    competency_id: int
    subject: str
    assessors: Tuple[str, ...]
    scores: Tuple[int, ...]
    mean_score: int
    standard_deviation: int
    verified: bool
    finalized: bool
    opened_at: int
    finalized_at: Optional[int]
    state: AssessmentState


@dataclass(frozen=True)
class ContributionVerdict:
    """How one contribution compares with the final mean."""
    assessor: str
    score: int
    deviation: int
    valid: bool


def new_record(competency_id: int, subject: str, height: int) -> Assessment:
    return Assessment(
        competency_id=competency_id,
        subject=subject,
        assessor_count=0,
        mean_score=0,
        standard_deviation=0,
        verified=False,
        finalized=False,
        opened_at=height,
    )


def state_of(record: Optional[Assessment]) -> AssessmentState:
    if record is None:
        return AssessmentState.UNOPENED
    if not record.finalized:
        return AssessmentState.OPEN
    return AssessmentState.VERIFIED if record.verified else AssessmentState.REJECTED


def contributions(record: Assessment) -> List[Tuple[str, int]]:
    """(assessor, score) pairs in submission order."""
    return [(c.assessor, c.score) for c in record.contributions]


def has_assessor(record: Assessment, assessor: str) -> bool:
    return any(c.assessor == assessor for c in record.contributions)


def ensure_open(record: Assessment):
    if record.finalized:
        raise EngineError(
            ErrorKind.ALREADY_FINALIZED,
            f"assessment of {record.subject} for competency {record.competency_id} is closed"
        )


def capacity(required_assessments: int, min_assessors: int, max_assessors: int) -> int:
    """Number of contributions a record accepts before it stops taking scores."""
    return min(max(required_assessments, min_assessors), max_assessors)


def append(record: Assessment, assessor: str, score: int, height: int, limit: int):
    """
    Append a contribution and recompute the record's statistics.

    Refuses a duplicate assessor and a record already holding `limit`
    contributions.
    """
    if has_assessor(record, assessor):
        raise EngineError(ErrorKind.ALREADY_ASSESSED, f"{assessor} already scored this assessment")
    if len(record.contributions) >= limit:
        raise EngineError(ErrorKind.CAPACITY_EXCEEDED, f"assessment already has {limit} assessors")

    record.contributions.append(
        Contribution(
            competency_id=record.competency_id,
            subject=record.subject,
            position=len(record.contributions),
            assessor=assessor,
            score=score,
            submitted_at=height,
        )
    )
    recompute_statistics(record)


def recompute_statistics(record: Assessment):
    scores = [score for _, score in contributions(record)]
    record.assessor_count = len(scores)
    record.mean_score = statistics.mean(scores)
    record.standard_deviation = statistics.dispersion(scores, record.mean_score)


def decide(record: Assessment, assessment_threshold: int) -> bool:
    """Verification outcome from the current mean."""
    return record.mean_score >= assessment_threshold


def classify(record: Assessment, deviation_threshold: int) -> List[ContributionVerdict]:
    """Judge every contribution against the record's mean, in order."""
    verdicts = []
    for assessor, score in contributions(record):
        deviation = abs(score - record.mean_score)
        verdicts.append(
            ContributionVerdict(
                assessor=assessor,
                score=score,
                deviation=deviation,
                valid=deviation < deviation_threshold,
            )
        )
    return verdicts


def snapshot(record: Assessment) -> AssessmentSnapshot:
    pairs = contributions(record)
    return AssessmentSnapshot(
        competency_id=record.competency_id,
        subject=record.subject,
        assessors=tuple(assessor for assessor, _ in pairs),
        scores=tuple(score for _, score in pairs),
        mean_score=record.mean_score,
        standard_deviation=record.standard_deviation,
        verified=record.verified,
        finalized=record.finalized,
        opened_at=record.opened_at,
        finalized_at=record.finalized_at,
        state=state_of(record),
    )
