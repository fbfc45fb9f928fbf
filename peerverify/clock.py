"""
Ledger height source.

The height advances by one for every committed mutating call, so it is
monotonic and never decreases. A call that is rolled back leaves it
untouched.
"""

from sqlalchemy.orm import Session

from peerverify import sequences


class LedgerClock:
    """Reads and advances the ledger height."""

    def __init__(self, db: Session):
        self.db = db

    def current_height(self) -> int:
        return sequences.peek(self.db, sequences.LEDGER_HEIGHT)

    def advance(self) -> int:
        """Advance the height and return the new value."""
        sequences.allocate(self.db, sequences.LEDGER_HEIGHT)
        return self.current_height()
