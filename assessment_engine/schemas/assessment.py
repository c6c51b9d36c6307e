"""
Pydantic schemas for assessments as seen by trainees and instructors.
"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OptionPublic(BaseModel):
    """Answer option without its correctness flag."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    text: str
    order: int


class QuestionPublic(BaseModel):
    """Question as shown while taking an assessment (no correct answers)."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    question_text: str
    question_type: str
    points: float
    order: int
    options: List[OptionPublic] = Field(default_factory=list)
    saved_answer: Optional[Any] = None


class AssessmentPublic(BaseModel):
    """Assessment configuration."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    time_limit: Optional[int] = Field(None, description="Minutes; null means unlimited")
    max_attempts: int
    passing_score: float
    show_results_immediately: bool = True
    questions_count: int = 0
    total_points: float = 0.0


class LastAttemptInfo(BaseModel):
    id: int
    attempt_number: int
    status: str
    percentage: Optional[float] = None
    is_passed: Optional[bool] = None
    submitted_at: Optional[datetime] = None


class TraineeAssessmentSummary(BaseModel):
    """Per-(trainee, assessment) rollup."""
    assessment_id: int
    trainee_id: int
    attempts_count: int
    attempts_remaining: int
    best_percentage: Optional[float] = None
    last_attempt: Optional[LastAttemptInfo] = None
    has_active_attempt: bool
    active_attempt_id: Optional[int] = None
    can_attempt: bool
    reason: Optional[str] = None


class AssessmentDetail(BaseModel):
    assessment: AssessmentPublic
    summary: TraineeAssessmentSummary
