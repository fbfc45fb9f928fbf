"""
All-or-nothing execution of mutating operations.

A process-wide lock gives every mutating call a total order; inside it
the ledger height is advanced, the operation runs, and the session is
committed. A precondition failure rolls the whole session back and comes
out as a failed Result. Anything unexpected also rolls back, then
propagates.
"""

import logging
import threading
from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from peerverify.clock import LedgerClock
from peerverify.errors import EngineError, Result


logger = logging.getLogger(__name__)

T = TypeVar("T")

_write_lock = threading.RLock()


def run_in_transaction(db: Session, operation: str, action: Callable[[], T]) -> Result:
    """
    Run action as a single atomic call.

    Args:
        db: Session the action writes through
        operation: Name used in log lines
        action: Callable doing the checks and writes; raises EngineError
            to refuse the call

    Returns:
        Result carrying the action's return value or the error kind
    """
    with _write_lock:
        try:
            LedgerClock(db).advance()
            value = action()
            db.commit()
        except EngineError as e:
            db.rollback()
            logger.info(f"{operation} refused: {e}")
            return Result.failure(e.kind, e.detail)
        except Exception:
            db.rollback()
            logger.exception(f"{operation} failed")
            raise
    return Result.success(value)
