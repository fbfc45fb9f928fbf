"""
Monotonic named counters stored in the database.

Used for the competency id allocator and the ledger height. Callers run
inside the serialized transaction, so read-modify-write on the row is safe.
"""

from sqlalchemy.orm import Session

from peerverify.database import Counter


COMPETENCY_ID = "competency_id"
LEDGER_HEIGHT = "ledger_height"


def _get_or_create(db: Session, name: str) -> Counter:
    counter = db.get(Counter, name)
    if counter is None:
        counter = Counter(name=name, value=0)
        db.add(counter)
        db.flush()
    return counter


def peek(db: Session, name: str) -> int:
    """Value the next allocation will return."""
    counter = db.get(Counter, name)
    return counter.value if counter is not None else 0


def allocate(db: Session, name: str) -> int:
    """Return the current value and advance the counter by one."""
    counter = _get_or_create(db, name)
    value = counter.value
    counter.value = value + 1
    return value
