"""
Helpers shared by the route modules.
"""

from fastapi import HTTPException, Header

from peerverify.errors import ErrorKind, Result


ERROR_STATUS = {
    ErrorKind.NOT_AUTHORIZED: 403,
    ErrorKind.ALREADY_REGISTERED: 409,
    ErrorKind.NOT_REGISTERED: 403,
    ErrorKind.INSUFFICIENT_ASSESSORS: 409,
    ErrorKind.ALREADY_ASSESSED: 409,
    ErrorKind.CAPACITY_EXCEEDED: 409,
    ErrorKind.SCORE_OUT_OF_RANGE: 422,
    ErrorKind.INVALID_COMPETENCY_ID: 404,
    ErrorKind.INVALID_INPUT: 422,
    ErrorKind.ASSESSMENT_NOT_FOUND: 404,
    ErrorKind.ALREADY_FINALIZED: 409,
}


def unwrap(result: Result):
    """Return the result's value or raise the matching HTTPException."""
    if result.ok:
        return result.value
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error, 400),
        detail={"error": result.error.value, "detail": result.detail},
    )


def get_caller(x_caller_id: str = Header(..., description="Identity making the call")) -> str:
    """Dependency returning the caller identity from the X-Caller-Id header."""
    return x_caller_id
