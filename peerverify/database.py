"""
Database models and session management for Peer Verification API.

Uses SQLAlchemy with SQLite for the standalone service.
Can be configured for PostgreSQL in production.
"""

from datetime import datetime, UTC
from typing import Optional, List

from sqlalchemy import (
    Integer, String, Text, DateTime, Boolean,
    ForeignKey, ForeignKeyConstraint, UniqueConstraint, create_engine
)
from sqlalchemy.orm import (
    DeclarativeBase, relationship, sessionmaker, Mapped, mapped_column
)

from peerverify.config import get_settings


# =============================================================================
# Database Setup
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def get_engine():
    """Create database engine."""
    settings = get_settings()
    return create_engine(
        settings.database_url,
        connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
        echo=settings.debug
    )


engine = get_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)


# =============================================================================
# Database Models
# =============================================================================


class Participant(Base):
    """
    A registered participant.

    The row existing is the registration flag. Reputation and the
    lifetime counters are only changed by the reputation ledger when
    an assessment the participant scored is finalized.
    """

    __tablename__ = "participants"

    identity: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Never negative: penalties are floored at zero
    reputation: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    total_assessments_given: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    invalid_assessments_given: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    registered_at: Mapped[int] = mapped_column(Integer, nullable=False)  # ledger height
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False
    )


class Competency(Base):
    """
    A competency participants can be assessed on.

    Ids come from the catalog's allocator (dense, zero-based), not from
    the database autoincrement.
    """

    __tablename__ = "competencies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)

    name: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    # Contributions the scheduler waits for before finalizing
    required_assessments: Mapped[int] = mapped_column(Integer, nullable=False)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)  # ledger height


class Assessment(Base):
    """
    The assessment record for one (competency, subject) pair.

    Holds the statistics derived from its contributions; they are
    recomputed every time a score is appended.
    """

    __tablename__ = "assessments"

    competency_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("competencies.id"), primary_key=True
    )
    subject: Mapped[str] = mapped_column(
        String(64), ForeignKey("participants.identity"), primary_key=True
    )

    # Derived statistics
    assessor_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mean_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    standard_deviation: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Outcome
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    finalized: Mapped[bool] = mapped_column(Boolean, default=False, index=True, nullable=False)

    # Ledger heights
    opened_at: Mapped[int] = mapped_column(Integer, nullable=False)
    finalized_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Relationships
    contributions: Mapped[List["Contribution"]] = relationship(
        "Contribution",
        back_populates="assessment",
        order_by="Contribution.position",
        cascade="all, delete-orphan",
    )


class Contribution(Base):
    """
    One assessor's score on an assessment record.

    Position keeps the submission order, which is also the order the
    reputation sweep walks at finalize time.
    """

    __tablename__ = "contributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    competency_id: Mapped[int] = mapped_column(Integer, nullable=False)
    subject: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    assessor: Mapped[str] = mapped_column(
        String(64), ForeignKey("participants.identity"), index=True, nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)

    submitted_at: Mapped[int] = mapped_column(Integer, nullable=False)  # ledger height

    # Relationships
    assessment: Mapped["Assessment"] = relationship("Assessment", back_populates="contributions")

    __table_args__ = (
        ForeignKeyConstraint(
            ["competency_id", "subject"],
            ["assessments.competency_id", "assessments.subject"],
            ondelete="CASCADE",
        ),
        # Each assessor can only score a record once
        UniqueConstraint('competency_id', 'subject', 'assessor', name='uq_record_assessor'),
        UniqueConstraint('competency_id', 'subject', 'position', name='uq_record_position'),
    )


class SkillReputation(Base):
    """
    Reputation a participant has earned as an assessor of one competency.

    Created lazily, with zeroed counters, on the first contribution.
    """

    __tablename__ = "skill_reputations"

    identity: Mapped[str] = mapped_column(
        String(64), ForeignKey("participants.identity"), primary_key=True
    )
    competency_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("competencies.id"), primary_key=True
    )

    reputation: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    assessments_given: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    valid_assessments_given: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Counter(Base):
    """
    Named monotonic counters (competency id allocator, ledger height).
    """

    __tablename__ = "counters"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
