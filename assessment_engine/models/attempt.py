"""
Models for tracking trainee assessment attempts and their answers.
"""
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from assessment_engine.db.base import Base


class AttemptStatus(str, Enum):
    """Lifecycle states of an attempt. SUBMITTED and EXPIRED are terminal."""
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    EXPIRED = "expired"


TERMINAL_STATUSES = (AttemptStatus.SUBMITTED.value, AttemptStatus.EXPIRED.value)


class AssessmentAttempt(Base):
    """One trainee's run at an assessment, from start to a terminal status."""

    __tablename__ = "assessment_attempts"
    __table_args__ = (
        UniqueConstraint(
            "trainee_id", "assessment_id", "attempt_number",
            name="uq_attempts_trainee_assessment_number",
        ),
        # At most one in_progress attempt per (trainee, assessment)
        Index(
            "uq_attempts_one_in_progress",
            "trainee_id",
            "assessment_id",
            unique=True,
            sqlite_where=text("status = 'in_progress'"),
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(
        Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trainee_id = Column(Integer, nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=AttemptStatus.IN_PROGRESS.value)
    started_at = Column(DateTime(timezone=True), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    # Set once at submission/expiry, never recomputed
    score = Column(Float, nullable=True)
    total_points = Column(Float, nullable=True)
    percentage = Column(Float, nullable=True)
    is_passed = Column(Boolean, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    assessment = relationship("Assessment", back_populates="attempts")
    answers = relationship(
        "AssessmentAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AssessmentAnswer.id",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class AssessmentAnswer(Base):
    """Answer recorded for one question of an attempt."""

    __tablename__ = "assessment_answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_answers_attempt_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(
        Integer, ForeignKey("assessment_attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(
        Integer, ForeignKey("assessment_questions.id", ondelete="SET NULL"), nullable=True
    )

    answer_data = Column(JSON, nullable=True)  # option id, list of option ids, or text
    is_correct = Column(Boolean, nullable=True)  # NULL until submission
    points_earned = Column(Float, nullable=True)  # NULL until submission

    answered_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    attempt = relationship("AssessmentAttempt", back_populates="answers")
    question = relationship("Question")
