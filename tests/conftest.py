"""
Pytest Fixtures - Shared database, engine and API client fixtures.

Every test gets a fresh in-memory SQLite database. The single connection
is shared through a StaticPool so the API client's worker threads see
the same data as the test body.
"""

import os

os.environ.setdefault("PV_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from peerverify.app import app
from peerverify.catalog import CompetencyCatalog
from peerverify.config import get_settings
from peerverify.database import Base, get_db
from peerverify.engine import AssessmentEngine
from peerverify.registry import ParticipantRegistry


ADMIN = get_settings().admin_identity


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def db_engine():
    """In-memory database with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def registry(db):
    return ParticipantRegistry(db)


@pytest.fixture
def catalog(db):
    return CompetencyCatalog(db)


@pytest.fixture
def engine(db):
    return AssessmentEngine(db)


@pytest.fixture
def register(registry):
    """Register every given identity, failing the test if one is refused."""
    def _register(*identities):
        for identity in identities:
            result = registry.register(identity)
            assert result.ok, result
    return _register


@pytest.fixture
def create_competency(catalog):
    """Create a competency as the administrator, failing the test if refused."""
    def _create(name="Python", required_assessments=3):
        result = catalog.create(
            ADMIN,
            name=name,
            description=f"Practical {name} work",
            category="programming",
            required_assessments=required_assessments,
        )
        assert result.ok, result
        return result.value
    return _create


@pytest.fixture
def competency(create_competency):
    """Competency 0, requiring three assessors."""
    return create_competency()


@pytest.fixture
def open_assessment(engine, register, competency):
    """Subject S with an open assessment on competency 0 and assessors A-E registered."""
    register("S", "A", "B", "C", "D", "E")
    result = engine.open(competency.id, "S")
    assert result.ok, result
    return competency.id, "S"


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture
def client(session_factory):
    """TestClient whose requests use the test database."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
