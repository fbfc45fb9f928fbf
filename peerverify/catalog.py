"""
Competency catalog.

Competencies are created once by the administrator and never change.
Their ids come from a dense zero-based allocator.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from peerverify import sequences
from peerverify.clock import LedgerClock
from peerverify.config import get_settings
from peerverify.database import Competency
from peerverify.errors import EngineError, ErrorKind, Result
from peerverify.transactions import run_in_transaction


logger = logging.getLogger(__name__)


class CompetencyCatalog:
    """Creates and looks up competencies."""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def create(
        self,
        caller: str,
        name: str,
        description: str,
        category: str,
        required_assessments: int,
    ) -> Result:
        """
        Create a competency and return it.

        Only the configured administrator may call this. Text fields must
        be non-empty and within their limits, and required_assessments
        must lie in 1..max_assessors.
        """
        def action() -> Competency:
            if caller != self.settings.admin_identity:
                raise EngineError(ErrorKind.NOT_AUTHORIZED, "only the administrator can create competencies")
            self._validate(name, description, category, required_assessments)

            competency = Competency(
                id=sequences.allocate(self.db, sequences.COMPETENCY_ID),
                name=name,
                description=description,
                category=category,
                required_assessments=required_assessments,
                created_by=caller,
                created_at=LedgerClock(self.db).current_height(),
            )
            self.db.add(competency)
            self.db.flush()
            logger.info(f"Created competency {competency.id} ({name})")
            return competency

        return run_in_transaction(self.db, "create_competency", action)

    def get(self, competency_id: int) -> Optional[Competency]:
        return self.db.get(Competency, competency_id)

    def next_competency_id(self) -> int:
        return sequences.peek(self.db, sequences.COMPETENCY_ID)

    def _validate(self, name: str, description: str, category: str, required_assessments: int):
        limits = {
            "name": (name, self.settings.name_max_length),
            "description": (description, self.settings.description_max_length),
            "category": (category, self.settings.category_max_length),
        }
        for field, (value, max_length) in limits.items():
            if not value or not value.strip():
                raise EngineError(ErrorKind.INVALID_INPUT, f"{field} must not be empty")
            if len(value) > max_length:
                raise EngineError(ErrorKind.INVALID_INPUT, f"{field} exceeds {max_length} characters")

        if not 1 <= required_assessments <= self.settings.max_assessors:
            raise EngineError(
                ErrorKind.INVALID_INPUT,
                f"required_assessments must be between 1 and {self.settings.max_assessors}"
            )
