"""
Reputation ledger.

Assessors are rewarded for agreeing with the aggregate and penalized for
straying from it, both globally and per competency. The sweep at
finalize time is planned as an ordered batch first and applied second.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from peerverify.config import AssessmentRules, get_rules
from peerverify.database import Participant, SkillReputation
from peerverify.records import ContributionVerdict


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReputationUpdate:
    """One planned reputation change for an assessor."""
    participant: str
    competency_id: int
    valid: bool
    delta: int  # +reward or -penalty, before flooring at zero


class ReputationLedger:
    """Global and per-competency reputation counters."""

    def __init__(self, db: Session, rules: Optional[AssessmentRules] = None):
        self.db = db
        self.rules = rules or get_rules()

    def plan(self, competency_id: int, verdicts: Iterable[ContributionVerdict]) -> List[ReputationUpdate]:
        """Turn contribution verdicts into an ordered batch of updates."""
        return [
            ReputationUpdate(
                participant=verdict.assessor,
                competency_id=competency_id,
                valid=verdict.valid,
                delta=self.rules.reputation_reward if verdict.valid else -self.rules.reputation_penalty,
            )
            for verdict in verdicts
        ]

    def apply_batch(self, updates: Iterable[ReputationUpdate]):
        for update in updates:
            self.apply(update.participant, update.competency_id, update.valid)

    def apply(self, participant: str, competency_id: int, valid: bool):
        """
        Reward or penalize one assessor.

        Both the global and the competency reputation move; penalties
        stop at zero. The participant is always registered because only
        registered assessors can contribute.
        """
        account = self.db.get(Participant, participant)
        skill = self.ensure_skill_reputation(participant, competency_id)

        account.total_assessments_given += 1
        skill.assessments_given += 1

        if valid:
            account.reputation += self.rules.reputation_reward
            skill.reputation += self.rules.reputation_reward
            skill.valid_assessments_given += 1
        else:
            account.reputation = max(0, account.reputation - self.rules.reputation_penalty)
            skill.reputation = max(0, skill.reputation - self.rules.reputation_penalty)
            account.invalid_assessments_given += 1

        logger.debug(
            f"Reputation of {participant} now {account.reputation} "
            f"({skill.reputation} for competency {competency_id})"
        )

    def ensure_skill_reputation(self, participant: str, competency_id: int) -> SkillReputation:
        """Fetch the competency reputation row, creating it zeroed if missing."""
        skill = self.db.get(SkillReputation, (participant, competency_id))
        if skill is None:
            skill = SkillReputation(
                identity=participant,
                competency_id=competency_id,
                reputation=0,
                assessments_given=0,
                valid_assessments_given=0,
            )
            self.db.add(skill)
            self.db.flush()
        return skill

    def get_reputation(self, participant: str) -> Optional[int]:
        account = self.db.get(Participant, participant)
        return account.reputation if account is not None else None

    def get_skill_reputation(self, participant: str, competency_id: int) -> SkillReputation:
        """Competency reputation; an unsaved zeroed row if none exists yet."""
        skill = self.db.get(SkillReputation, (participant, competency_id))
        if skill is None:
            return SkillReputation(
                identity=participant,
                competency_id=competency_id,
                reputation=0,
                assessments_given=0,
                valid_assessments_given=0,
            )
        return skill
