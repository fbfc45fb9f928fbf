"""
Participant registry.

Registration is the only way a participant row comes into existence;
nothing here ever deletes one.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from peerverify.clock import LedgerClock
from peerverify.config import get_settings
from peerverify.database import Participant
from peerverify.errors import EngineError, ErrorKind, Result
from peerverify.transactions import run_in_transaction


logger = logging.getLogger(__name__)


class ParticipantRegistry:
    """Registers participants and answers registration queries."""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def register(self, identity: str) -> Result:
        """
        Register identity as a participant.

        Fails with INVALID_INPUT for an empty or over-long identity and
        ALREADY_REGISTERED if it is already known.
        """
        def action() -> Participant:
            if not identity or len(identity) > self.settings.identity_max_length:
                raise EngineError(ErrorKind.INVALID_INPUT, "identity must be 1-"
                                  f"{self.settings.identity_max_length} characters")
            if self.is_registered(identity):
                raise EngineError(ErrorKind.ALREADY_REGISTERED, identity)

            participant = Participant(
                identity=identity,
                reputation=0,
                total_assessments_given=0,
                invalid_assessments_given=0,
                registered_at=LedgerClock(self.db).current_height(),
            )
            self.db.add(participant)
            self.db.flush()
            logger.info(f"Registered participant {identity}")
            return participant

        return run_in_transaction(self.db, "register", action)

    def is_registered(self, identity: str) -> bool:
        return self.get(identity) is not None

    def get(self, identity: str) -> Optional[Participant]:
        return self.db.get(Participant, identity)
