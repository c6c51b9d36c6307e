"""
Assessment definitions: the assessment itself, its questions and their options.

These rows are written by the question authoring surface and only read here.
"""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from assessment_engine.db.base import Base


class Assessment(Base):
    """Timed test attached to a course."""

    __tablename__ = "assessments"
    __table_args__ = (
        CheckConstraint("max_attempts >= 1", name="ck_assessments_max_attempts"),
        CheckConstraint(
            "passing_score >= 0 AND passing_score <= 100",
            name="ck_assessments_passing_score",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    time_limit = Column(Integer, nullable=True)  # minutes, NULL = unlimited
    passing_score = Column(Float, nullable=False, default=70.0)  # percentage
    max_attempts = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, default=True)
    show_results_immediately = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    questions = relationship(
        "Question",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="Question.order",
    )
    attempts = relationship("AssessmentAttempt", back_populates="assessment")


class Question(Base):
    """Question belonging to exactly one assessment."""

    __tablename__ = "assessment_questions"

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(
        Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_text = Column(Text, nullable=False)
    question_type = Column(String(30), nullable=False, default="multiple_choice")  # multiple_choice, checkbox, identification
    points = Column(Float, nullable=False, default=1.0)
    explanation = Column(Text, nullable=True)
    correct_answer = Column(Text, nullable=True)  # identification only
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    assessment = relationship("Assessment", back_populates="questions")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.order",
    )


class QuestionOption(Base):
    """Answer option for multiple choice and checkbox questions."""

    __tablename__ = "question_options"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(
        Integer, ForeignKey("assessment_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)

    # Relationships
    question = relationship("Question", back_populates="options")
