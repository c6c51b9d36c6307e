"""
Eligibility checker for assessment attempts.
Decides whether a trainee may start a new attempt or must resume one.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from assessment_engine.models.assessment import Assessment
from assessment_engine.models.attempt import AssessmentAttempt, AttemptStatus

logger = logging.getLogger(__name__)

REASON_ALREADY_ACTIVE = "attempt_already_active"
REASON_LIMIT_EXCEEDED = "attempt_limit_exceeded"


@dataclass
class EligibilityResult:
    """Outcome of an eligibility check."""
    allowed: bool
    reason: Optional[str]
    attempts_count: int
    attempts_remaining: int
    active_attempt_id: Optional[int] = None


class EligibilityChecker:
    """
    Checks whether a trainee may start or resume an attempt.

    An in-progress attempt always has to be resumed before anything else, and
    only finished (submitted or expired) attempts count against max_attempts.
    Both checks are plain reads over the attempt history.
    """

    def __init__(self, db: Session):
        self.db = db

    def can_resume(self, assessment: Assessment, trainee_id: int) -> Optional[AssessmentAttempt]:
        """
        Return the trainee's in-progress attempt for this assessment, if any.

        Args:
            assessment: Assessment being taken
            trainee_id: Trainee ID

        Returns:
            The single in-progress attempt or None
        """
        return self.db.query(AssessmentAttempt).filter(
            AssessmentAttempt.assessment_id == assessment.id,
            AssessmentAttempt.trainee_id == trainee_id,
            AssessmentAttempt.status == AttemptStatus.IN_PROGRESS.value,
        ).first()

    def count_attempts(self, assessment: Assessment, trainee_id: int) -> int:
        """Total attempts of any status."""
        return self.db.query(AssessmentAttempt).filter(
            AssessmentAttempt.assessment_id == assessment.id,
            AssessmentAttempt.trainee_id == trainee_id,
        ).count()

    def count_finished_attempts(self, assessment: Assessment, trainee_id: int) -> int:
        """Attempts that are no longer in progress."""
        return self.db.query(AssessmentAttempt).filter(
            AssessmentAttempt.assessment_id == assessment.id,
            AssessmentAttempt.trainee_id == trainee_id,
            AssessmentAttempt.status != AttemptStatus.IN_PROGRESS.value,
        ).count()

    def can_start(self, assessment: Assessment, trainee_id: int) -> EligibilityResult:
        """
        Check whether a new attempt may be started.

        Args:
            assessment: Assessment being taken
            trainee_id: Trainee ID

        Returns:
            EligibilityResult; `allowed` is False when an attempt is in
            progress or the finished attempts already reach max_attempts
        """
        active = self.can_resume(assessment, trainee_id)
        finished = self.count_finished_attempts(assessment, trainee_id)
        attempts_count = finished + (1 if active else 0)
        remaining = max(int(assessment.max_attempts) - finished, 0)

        if active is not None:
            return EligibilityResult(
                allowed=False,
                reason=REASON_ALREADY_ACTIVE,
                attempts_count=attempts_count,
                attempts_remaining=remaining,
                active_attempt_id=active.id,
            )

        if finished >= assessment.max_attempts:
            return EligibilityResult(
                allowed=False,
                reason=REASON_LIMIT_EXCEEDED,
                attempts_count=attempts_count,
                attempts_remaining=0,
            )

        return EligibilityResult(
            allowed=True,
            reason=None,
            attempts_count=attempts_count,
            attempts_remaining=remaining,
        )
