"""Schemas module - Import all schemas."""
from assessment_engine.schemas.assessment import (
    AssessmentDetail,
    AssessmentPublic,
    LastAttemptInfo,
    OptionPublic,
    QuestionPublic,
    TraineeAssessmentSummary,
)
from assessment_engine.schemas.attempt import (
    AnswerRecordOut,
    AnswerSaved,
    AnswerSubmit,
    AssessmentResults,
    AssessmentStats,
    AttemptOut,
    AttemptResult,
    AttemptSubmit,
    ExpirySweepResult,
    StartAttemptResponse,
    TraineeAssessmentStats,
    TraineeResultRow,
)
from assessment_engine.schemas.security_log import (
    Pagination,
    SecurityEventAccepted,
    SecurityEventBulkCreate,
    SecurityEventCreate,
    SecurityLogFilter,
    SecurityLogOut,
    SecurityLogPage,
    SecurityLogsSummary,
)
from assessment_engine.schemas.common import ErrorResponse

__all__ = [
    "AssessmentDetail",
    "AssessmentPublic",
    "LastAttemptInfo",
    "OptionPublic",
    "QuestionPublic",
    "TraineeAssessmentSummary",
    "AnswerRecordOut",
    "AnswerSaved",
    "AnswerSubmit",
    "AssessmentResults",
    "AssessmentStats",
    "AttemptOut",
    "AttemptResult",
    "AttemptSubmit",
    "ExpirySweepResult",
    "StartAttemptResponse",
    "TraineeAssessmentStats",
    "TraineeResultRow",
    "Pagination",
    "SecurityEventAccepted",
    "SecurityEventBulkCreate",
    "SecurityEventCreate",
    "SecurityLogFilter",
    "SecurityLogOut",
    "SecurityLogPage",
    "SecurityLogsSummary",
    "ErrorResponse",
]
