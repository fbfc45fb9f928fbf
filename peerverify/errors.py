"""
Error kinds and operation results for the verification engine.

Precondition failures are raised inside the engine as EngineError and
converted to a failed Result before they leave it; callers only ever see
a Result.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar


T = TypeVar("T")


class ErrorKind(str, Enum):
    """Why an operation was refused."""
    NOT_AUTHORIZED = "not_authorized"                # Missing privilege or self-assessment
    ALREADY_REGISTERED = "already_registered"
    NOT_REGISTERED = "not_registered"
    INSUFFICIENT_ASSESSORS = "insufficient_assessors"
    ALREADY_ASSESSED = "already_assessed"            # Duplicate request or duplicate assessor
    CAPACITY_EXCEEDED = "capacity_exceeded"
    SCORE_OUT_OF_RANGE = "score_out_of_range"
    INVALID_COMPETENCY_ID = "invalid_competency_id"
    INVALID_INPUT = "invalid_input"
    ASSESSMENT_NOT_FOUND = "assessment_not_found"
    ALREADY_FINALIZED = "already_finalized"


class EngineError(Exception):
    """A precondition violation detected before any state was written."""

    def __init__(self, kind: ErrorKind, detail: str = ""):
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind
        self.detail = detail


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a success value or a named error kind."""
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, detail: str = "") -> "Result":
        return cls(error=kind, detail=detail)
