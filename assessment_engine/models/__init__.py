"""Models module - Import all models here for Alembic."""
from assessment_engine.db.base import Base
from assessment_engine.models.assessment import Assessment, Question, QuestionOption
from assessment_engine.models.attempt import AssessmentAttempt, AssessmentAnswer, AttemptStatus
from assessment_engine.models.security_log import SecurityLog

__all__ = ["Base", "Assessment", "Question", "QuestionOption", "AssessmentAttempt", "AssessmentAnswer", "AttemptStatus", "SecurityLog"]
