"""
Pydantic schemas for assessment attempts, answers and results.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from assessment_engine.schemas.assessment import AssessmentPublic, QuestionPublic


class AnswerSubmit(BaseModel):
    """
    Schema for one answer.

    The `answer_data` structure depends on the question type:

    **Multiple Choice:** `3` or `{"option_id": 3}`

    **Checkbox:** `[3, 5]` or `{"option_ids": [3, 5]}`

    **Identification:** `"Starboard"` or `{"text": "Starboard"}`
    """
    question_id: int = Field(..., description="ID of the question being answered")
    answer_data: Any = Field(
        None,
        description="Answer payload (structure depends on question_type)",
        examples=[3, [3, 5], "Starboard"],
    )


class AttemptSubmit(BaseModel):
    """Schema for submitting an attempt. Answers override any auto-saved ones."""
    answers: List[AnswerSubmit] = Field(default_factory=list)


class AnswerSaved(BaseModel):
    message: str
    question_id: int


class AnswerRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question_id: Optional[int] = None
    answer_data: Any = None
    is_correct: Optional[bool] = None
    points_earned: Optional[float] = None
    answered_at: Optional[datetime] = None


class AttemptOut(BaseModel):
    """Schema for an attempt as returned to the trainee."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    assessment_id: int
    trainee_id: int
    attempt_number: int
    status: str
    started_at: datetime
    submitted_at: Optional[datetime] = None
    time_remaining: Optional[int] = Field(None, description="Seconds left; null if untimed or finished")
    score: Optional[float] = None
    total_points: Optional[float] = None
    percentage: Optional[float] = None
    is_passed: Optional[bool] = None
    answers: List[AnswerRecordOut] = Field(default_factory=list)


class StartAttemptResponse(BaseModel):
    """Response for starting or resuming an attempt."""
    attempt: AttemptOut
    resumed: bool
    assessment: AssessmentPublic
    questions: List[QuestionPublic]
    time_limit: Optional[int] = None
    time_remaining: Optional[int] = None
    instructions: Optional[str] = None


class AttemptResult(BaseModel):
    """Finished attempt with answer key (when the assessment reveals it)."""
    attempt: AttemptOut
    assessment: AssessmentPublic
    correct_answers: Dict[int, Any] = Field(default_factory=dict)
    explanations: Dict[int, str] = Field(default_factory=dict)


class TraineeAssessmentStats(BaseModel):
    total_assessments: int
    completed_assessments: int
    passed_assessments: int
    average_score: float
    pending_assessments: int


class TraineeResultRow(BaseModel):
    """One trainee's standing on an assessment, for instructor review."""
    trainee_id: int
    attempts_count: int
    best_percentage: Optional[float] = None
    latest: Optional[AttemptOut] = None
    last_attempt_date: Optional[datetime] = None
    attempts: List[AttemptOut] = Field(default_factory=list)


class AssessmentResults(BaseModel):
    assessment: AssessmentPublic
    trainees: List[TraineeResultRow]


class AssessmentStats(BaseModel):
    total_attempts: int
    submitted_attempts: int
    passed_attempts: int
    average_score: float
    pass_rate: float
    unique_trainees: int


class ExpirySweepResult(BaseModel):
    expired_attempt_ids: List[int]
