"""
Peer Verification API Service - FastAPI Application.

REST API over the peer assessment engine: participants request
verification of a competency, peers score them, and finalized
assessments feed back into each assessor's reputation.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, text
from sqlalchemy.orm import Session

from peerverify.config import get_settings
from peerverify.database import Assessment, Competency, Participant, get_db, init_db
from peerverify.models import HealthResponse
from peerverify.routes import (
    assessments_router, competencies_router, finalization_router, participants_router
)
from peerverify.scheduler import get_scheduler, start_scheduler, stop_scheduler


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Peer Verification API Service...")
    init_db()
    logger.info("Database initialized")
    if settings.auto_finalize_enabled:
        start_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down Peer Verification API Service...")
    stop_scheduler()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="""
## Peer Verification API

Participants prove a competency by collecting scores from their peers.

### Key Concepts

- **Competencies**: Skills defined by the catalog administrator
- **Assessments**: One subject's request to be verified on a competency
- **Scores**: Independent 0-100 opinions from other participants
- **Reputation**: Earned by assessors whose scores agree with the outcome

### How Verification Works

Once at least three assessors have scored, the assessment can be
finalized. The subject is verified when the mean score reaches 70.
Every assessor whose score lies within 15 points of the mean gains
reputation; the others lose some. Agreement is rewarded whether or
not the subject was verified.

### API Flow

1. Participants register (POST /participants)
2. A subject requests assessment (POST /assessments/{competency_id})
3. Peers submit scores (POST /assessments/{competency_id}/{subject}/scores)
4. The assessment is finalized (POST /assessments/{competency_id}/{subject}/finalize)
    """,
    version=settings.app_version,
    lifespan=lifespan,
)

# Configure CORS
origins = settings.allowed_origins.split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(participants_router, prefix="/api")
app.include_router(competencies_router, prefix="/api")
app.include_router(assessments_router, prefix="/api")
app.include_router(finalization_router, prefix="/api")


# Root endpoint
@app.get("/")
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Peer assessment of competencies with reputation feedback",
        "docs_url": "/docs",
        "openapi_url": "/openapi.json",
        "endpoints": {
            "participants": "/api/participants",
            "competencies": "/api/competencies",
            "assessments": "/api/assessments",
            "finalization": "/api/finalization",
            "health": "/health",
        }
    }


@app.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Returns service health status and basic statistics.
    """
    try:
        db.execute(text("SELECT 1"))
        db_connected = True
    except Exception:
        logger.exception("Database health check failed")
        db_connected = False

    if not db_connected:
        return HealthResponse(status="degraded", version=settings.app_version, database_connected=False)

    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        database_connected=True,
        participants_count=db.query(func.count(Participant.identity)).scalar() or 0,
        competencies_count=db.query(func.count(Competency.id)).scalar() or 0,
        open_assessments_count=db.query(func.count()).select_from(Assessment).filter(
            Assessment.finalized.is_(False)
        ).scalar() or 0,
        scheduler_running=get_scheduler().scheduler.running,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "peerverify.app:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.debug
    )
