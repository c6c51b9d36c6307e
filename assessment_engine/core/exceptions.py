"""
Domain errors raised by the attempt engine.

Eligibility and state-transition errors propagate to the API layer, where
`main.py` turns them into HTTP responses. `ScoringDataMissing` and
`RecorderWriteFailed` are contained by the scoring engine and the security
recorder respectively.
"""
from typing import Optional


class AssessmentEngineError(Exception):
    """Base class for all engine errors."""

    message = "Assessment engine error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class AssessmentNotFound(AssessmentEngineError):
    message = "Assessment not found"


class AttemptNotFound(AssessmentEngineError):
    message = "Assessment attempt not found"


class QuestionNotInAssessment(AssessmentEngineError):
    message = "Question does not belong to this assessment"


class AttemptAlreadyActive(AssessmentEngineError):
    """A start was requested while an attempt is still in progress."""

    message = "You already have an attempt in progress. Resume your attempt instead."

    def __init__(self, active_attempt_id: Optional[int] = None, message: Optional[str] = None):
        super().__init__(message)
        self.active_attempt_id = active_attempt_id


class AttemptLimitExceeded(AssessmentEngineError):
    message = "No attempts remaining for this assessment."


class AttemptNotActive(AssessmentEngineError):
    message = "This attempt has already been submitted or has expired."


class ScoringDataMissing(AssessmentEngineError):
    """Answer or question definition missing from the scoring snapshot."""

    message = "Question data missing from scoring snapshot"

    def __init__(self, question_id: Optional[int] = None, message: Optional[str] = None):
        super().__init__(message)
        self.question_id = question_id


class RecorderWriteFailed(AssessmentEngineError):
    message = "Failed to persist security event"
