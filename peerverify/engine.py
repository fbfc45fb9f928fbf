"""
Assessment engine: request, score and finalize competency assessments.

The engine is stateless; every call reads the records it needs through
the session, writes the new state, and commits it as one unit through
run_in_transaction. Refusals come back as a failed Result with nothing
written.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from peerverify import records
from peerverify.catalog import CompetencyCatalog
from peerverify.clock import LedgerClock
from peerverify.config import AssessmentRules, get_rules
from peerverify.database import Assessment, Competency
from peerverify.errors import EngineError, ErrorKind, Result
from peerverify.records import AssessmentSnapshot
from peerverify.registry import ParticipantRegistry
from peerverify.reputation import ReputationLedger, ReputationUpdate
from peerverify.transactions import run_in_transaction


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalizeOutcome:
    """What finalize decided and which reputation changes it applied."""
    competency_id: int
    subject: str
    verified: bool
    mean_score: int
    standard_deviation: int
    finalized_at: int
    updates: Tuple[ReputationUpdate, ...]


class AssessmentEngine:
    """
    Orchestrates the assessment lifecycle.

    Usage:
        engine = AssessmentEngine(db)
        engine.open(competency_id, subject)
        engine.submit(competency_id, subject, assessor, score)   # repeated
        result = engine.finalize(competency_id, subject)
        if result.ok:
            result.value.verified
    """

    def __init__(self, db: Session, rules: Optional[AssessmentRules] = None):
        self.db = db
        self.rules = rules or get_rules()
        self.registry = ParticipantRegistry(db)
        self.catalog = CompetencyCatalog(db)
        self.ledger = ReputationLedger(db, self.rules)
        self.clock = LedgerClock(db)

    # =========================================================================
    # Mutating operations
    # =========================================================================

    def open(self, competency_id: int, subject: str, height: Optional[int] = None) -> Result:
        """
        Open an assessment of subject for a competency.

        Args:
            competency_id: Competency being claimed
            subject: Participant asking to be assessed
            height: Ledger height to record; read from the clock when None

        Returns:
            Result with an AssessmentSnapshot of the new, empty record
        """
        def action() -> AssessmentSnapshot:
            self._require_competency(competency_id)
            self._require_registered(subject)
            if self._find(competency_id, subject) is not None:
                raise EngineError(
                    ErrorKind.ALREADY_ASSESSED,
                    f"{subject} already requested competency {competency_id}"
                )

            opened_at = height if height is not None else self.clock.current_height()
            record = records.new_record(competency_id, subject, opened_at)
            self.db.add(record)
            self.db.flush()

            logger.info(f"Opened assessment of {subject} for competency {competency_id} at {opened_at}")
            return records.snapshot(record)

        return run_in_transaction(self.db, "open", action)

    def submit(self, competency_id: int, subject: str, assessor: str, score: int) -> Result:
        """
        Record one assessor's score for an open assessment.

        Returns:
            Result with the updated AssessmentSnapshot
        """
        def action() -> AssessmentSnapshot:
            competency = self._require_competency(competency_id)
            record = self._require_record(competency_id, subject)
            records.ensure_open(record)
            self._require_registered(assessor)
            if assessor == subject:
                raise EngineError(ErrorKind.NOT_AUTHORIZED, "participants cannot assess themselves")
            if not isinstance(score, int) or isinstance(score, bool):
                raise EngineError(ErrorKind.SCORE_OUT_OF_RANGE, f"score {score!r} is not an integer")
            if not 0 <= score <= self.rules.max_score:
                raise EngineError(
                    ErrorKind.SCORE_OUT_OF_RANGE,
                    f"score {score} outside 0-{self.rules.max_score}"
                )

            records.append(
                record, assessor, score,
                height=self.clock.current_height(),
                limit=self._capacity(competency),
            )
            self.ledger.ensure_skill_reputation(assessor, competency_id)
            self.db.flush()

            logger.info(
                f"{assessor} scored {subject} on competency {competency_id}: "
                f"{record.assessor_count} assessors, mean {record.mean_score}"
            )
            return records.snapshot(record)

        return run_in_transaction(self.db, "submit", action)

    def finalize(self, competency_id: int, subject: str) -> Result:
        """
        Decide an assessment and settle every assessor's reputation.

        The record is verified when its mean reaches the assessment
        threshold. Each assessor is then rewarded when their score lies
        within the deviation threshold of the mean, penalized otherwise,
        regardless of the outcome. A record can only be finalized once.

        Returns:
            Result with a FinalizeOutcome
        """
        def action() -> FinalizeOutcome:
            self._require_competency(competency_id)
            record = self._require_record(competency_id, subject)
            records.ensure_open(record)
            if record.assessor_count < self.rules.min_assessors:
                raise EngineError(
                    ErrorKind.INSUFFICIENT_ASSESSORS,
                    f"{record.assessor_count} of {self.rules.min_assessors} assessors"
                )

            verified = records.decide(record, self.rules.assessment_threshold)
            verdicts = records.classify(record, self.rules.standard_deviation_threshold)
            updates = self.ledger.plan(competency_id, verdicts)
            self.ledger.apply_batch(updates)

            record.verified = verified
            record.finalized = True
            record.finalized_at = self.clock.current_height()
            self.db.flush()

            logger.info(
                f"Finalized assessment of {subject} for competency {competency_id}: "
                f"{'verified' if verified else 'rejected'} (mean {record.mean_score}, "
                f"{sum(1 for u in updates if u.valid)}/{len(updates)} assessors in agreement)"
            )
            return FinalizeOutcome(
                competency_id=competency_id,
                subject=subject,
                verified=verified,
                mean_score=record.mean_score,
                standard_deviation=record.standard_deviation,
                finalized_at=record.finalized_at,
                updates=tuple(updates),
            )

        return run_in_transaction(self.db, "finalize", action)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_record(self, competency_id: int, subject: str) -> Result:
        record = self._find(competency_id, subject)
        if record is None:
            return Result.failure(
                ErrorKind.ASSESSMENT_NOT_FOUND,
                f"no assessment of {subject} for competency {competency_id}"
            )
        return Result.success(records.snapshot(record))

    def get_assessor_count(self, competency_id: int, subject: str) -> Result:
        if self.catalog.get(competency_id) is None:
            return Result.failure(ErrorKind.INVALID_COMPETENCY_ID, str(competency_id))
        record = self._find(competency_id, subject)
        return Result.success(record.assessor_count if record is not None else 0)

    def get_reputation(self, identity: str) -> Result:
        reputation = self.ledger.get_reputation(identity)
        if reputation is None:
            return Result.failure(ErrorKind.NOT_REGISTERED, identity)
        return Result.success(reputation)

    def get_skill_reputation(self, identity: str, competency_id: int) -> Result:
        if self.catalog.get(competency_id) is None:
            return Result.failure(ErrorKind.INVALID_COMPETENCY_ID, str(competency_id))
        if not self.registry.is_registered(identity):
            return Result.failure(ErrorKind.NOT_REGISTERED, identity)
        return Result.success(self.ledger.get_skill_reputation(identity, competency_id))

    def ready_for_finalization(self) -> List[Tuple[int, str]]:
        """
        Open records that have collected as many scores as they accept.

        A competency requiring fewer than the minimum assessor count
        waits for the minimum.
        """
        candidates = (
            self.db.query(Assessment, Competency)
            .join(Competency, Competency.id == Assessment.competency_id)
            .filter(
                Assessment.finalized.is_(False),
                Assessment.assessor_count >= self.rules.min_assessors,
            )
            .order_by(Assessment.opened_at, Assessment.competency_id, Assessment.subject)
            .all()
        )
        return [
            (record.competency_id, record.subject)
            for record, competency in candidates
            if record.assessor_count >= self._capacity(competency)
        ]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _find(self, competency_id: int, subject: str) -> Optional[Assessment]:
        return self.db.get(Assessment, (competency_id, subject))

    def _capacity(self, competency: Competency) -> int:
        return records.capacity(
            competency.required_assessments,
            self.rules.min_assessors,
            self.rules.max_assessors,
        )

    def _require_competency(self, competency_id: int) -> Competency:
        competency = self.catalog.get(competency_id)
        if competency is None:
            raise EngineError(ErrorKind.INVALID_COMPETENCY_ID, f"unknown competency {competency_id}")
        return competency

    def _require_registered(self, identity: str):
        if not self.registry.is_registered(identity):
            raise EngineError(ErrorKind.NOT_REGISTERED, f"{identity} is not registered")

    def _require_record(self, competency_id: int, subject: str) -> Assessment:
        record = self._find(competency_id, subject)
        if record is None:
            raise EngineError(
                ErrorKind.ASSESSMENT_NOT_FOUND,
                f"no assessment of {subject} for competency {competency_id}"
            )
        return record
