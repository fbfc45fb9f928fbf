"""
Routes package for Peer Verification API.
"""

from peerverify.routes.assessments import router as assessments_router
from peerverify.routes.competencies import router as competencies_router
from peerverify.routes.finalization import router as finalization_router
from peerverify.routes.participants import router as participants_router

__all__ = [
    "assessments_router",
    "competencies_router",
    "finalization_router",
    "participants_router",
]
