"""
Attempt lifecycle: start, resume, auto-save, submit and expire.

Status transitions are guarded by a conditional UPDATE keyed on
`status = 'in_progress'`, executed in the same transaction that writes the
scores. Whichever of submit/expire commits first wins; the other one sees zero
affected rows and returns the stored result.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assessment_engine.core.assessment.eligibility_checker import (
    REASON_ALREADY_ACTIVE,
    EligibilityChecker,
)
from assessment_engine.core.assessment.scoring import (
    OptionDefinition,
    QuestionDefinition,
    QuestionType,
    is_passed,
    score_answers,
)
from assessment_engine.core.exceptions import (
    AssessmentNotFound,
    AttemptAlreadyActive,
    AttemptLimitExceeded,
    AttemptNotActive,
    AttemptNotFound,
    QuestionNotInAssessment,
)
from assessment_engine.core.integrity.events import SecurityEventType, is_suspicious
from assessment_engine.models.assessment import Assessment, Question
from assessment_engine.models.attempt import AssessmentAnswer, AssessmentAttempt, AttemptStatus
from assessment_engine.models.security_log import SecurityLog
from assessment_engine.services.security_recorder import SecurityEventRecorder
from assessment_engine.utils.datetime_helpers import as_utc, utcnow

logger = logging.getLogger(__name__)


def build_question_snapshot(questions: Sequence[Question]) -> List[QuestionDefinition]:
    """
    Freeze ORM questions into scoring definitions.

    Questions with an unknown type are left out of the snapshot (and therefore
    out of the total) and logged.
    """
    snapshot = []
    for question in questions:
        try:
            question_type = QuestionType(question.question_type)
        except ValueError:
            logger.error(
                f"Question {question.id} has unknown type {question.question_type!r}; excluded from scoring"
            )
            continue
        snapshot.append(QuestionDefinition(
            id=question.id,
            question_type=question_type,
            points=float(question.points or 0),
            options=tuple(
                OptionDefinition(id=option.id, is_correct=bool(option.is_correct))
                for option in question.options
            ),
            correct_answer=question.correct_answer,
        ))
    return snapshot


class AttemptManager:
    """
    Owns the lifecycle of assessment attempts.

    Example:
        >>> manager = AttemptManager(db, recorder)
        >>> attempt, resumed = manager.start_or_resume(assessment_id=1, trainee_id=42)
        >>> manager.submit(attempt.id, {10: 3, 11: [4, 5]}, trainee_id=42)
    """

    def __init__(
        self,
        db: Session,
        recorder: Optional[SecurityEventRecorder] = None,
        grace_seconds: int = 0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.recorder = recorder
        self.grace_seconds = grace_seconds
        self.clock = clock
        self.eligibility = EligibilityChecker(db)

    # ============= Lookups =============

    def get_assessment(self, assessment_id: int) -> Assessment:
        assessment = self.db.query(Assessment).filter(Assessment.id == assessment_id).first()
        if not assessment:
            raise AssessmentNotFound(f"Assessment {assessment_id} not found")
        return assessment

    def get_attempt(self, attempt_id: int, trainee_id: Optional[int] = None) -> AssessmentAttempt:
        """Fetch an attempt, optionally checking that it belongs to the trainee."""
        query = self.db.query(AssessmentAttempt).filter(AssessmentAttempt.id == attempt_id)
        if trainee_id is not None:
            query = query.filter(AssessmentAttempt.trainee_id == trainee_id)
        attempt = query.first()
        if not attempt:
            raise AttemptNotFound(f"Attempt {attempt_id} not found")
        return attempt

    # ============= Time limits =============

    @staticmethod
    def deadline(attempt: AssessmentAttempt) -> Optional[datetime]:
        time_limit = attempt.assessment.time_limit
        if time_limit is None:
            return None
        return as_utc(attempt.started_at) + timedelta(minutes=time_limit)

    def is_overdue(self, attempt: AssessmentAttempt, now: Optional[datetime] = None, grace_seconds: int = 0) -> bool:
        deadline = self.deadline(attempt)
        if deadline is None:
            return False
        now = now or self.clock()
        return now > deadline + timedelta(seconds=grace_seconds)

    def time_remaining(self, attempt: AssessmentAttempt, now: Optional[datetime] = None) -> Optional[int]:
        """Seconds left on an in-progress, time-boxed attempt."""
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            return None
        deadline = self.deadline(attempt)
        if deadline is None:
            return None
        now = now or self.clock()
        return max(int((deadline - now).total_seconds()), 0)

    # ============= Start / resume =============

    def start(
        self,
        assessment: Assessment,
        trainee_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AssessmentAttempt:
        """
        Create a new in-progress attempt.

        Raises:
            AttemptAlreadyActive: An attempt is already in progress
            AttemptLimitExceeded: max_attempts finished attempts already exist
        """
        eligibility = self.eligibility.can_start(assessment, trainee_id)
        if not eligibility.allowed:
            if eligibility.reason == REASON_ALREADY_ACTIVE:
                raise AttemptAlreadyActive(eligibility.active_attempt_id)
            raise AttemptLimitExceeded()

        attempt = AssessmentAttempt(
            assessment_id=assessment.id,
            trainee_id=trainee_id,
            attempt_number=eligibility.attempts_count + 1,
            status=AttemptStatus.IN_PROGRESS.value,
            started_at=self.clock(),
        )
        self.db.add(attempt)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent start won the unique index race
            self.db.rollback()
            active = self.eligibility.can_resume(assessment, trainee_id)
            if active is None and self.eligibility.count_finished_attempts(assessment, trainee_id) >= assessment.max_attempts:
                raise AttemptLimitExceeded()
            raise AttemptAlreadyActive(active.id if active else None)

        self.db.refresh(attempt)
        logger.info(
            f"Trainee {trainee_id} started attempt #{attempt.attempt_number} "
            f"(id={attempt.id}) on assessment {assessment.id}"
        )
        self._record(
            SecurityEventType.ASSESSMENT_STARTED,
            attempt,
            ip_address=ip_address,
            user_agent=user_agent,
            additional_data={"attempt_number": attempt.attempt_number},
        )
        return attempt

    def start_or_resume(
        self,
        assessment_id: int,
        trainee_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[AssessmentAttempt, bool]:
        """
        Resume the in-progress attempt if there is one, otherwise start a new one.

        Returns:
            (attempt, resumed)
        """
        assessment = self.get_assessment(assessment_id)
        active = self.eligibility.can_resume(assessment, trainee_id)
        if active is not None:
            logger.info(f"Trainee {trainee_id} resumed attempt {active.id} on assessment {assessment_id}")
            return active, True
        return self.start(assessment, trainee_id, ip_address=ip_address, user_agent=user_agent), False

    # ============= Answers =============

    def save_answer(
        self,
        attempt_id: int,
        trainee_id: int,
        question_id: int,
        answer_data: Any,
    ) -> AssessmentAnswer:
        """
        Auto-save one answer on an in-progress attempt. Scores stay empty until submission.

        Raises:
            AttemptNotActive: The attempt is already finished
            QuestionNotInAssessment: The question belongs to another assessment
        """
        attempt = self.get_attempt(attempt_id, trainee_id)
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            raise AttemptNotActive()

        question = self.db.query(Question).filter(
            Question.id == question_id,
            Question.assessment_id == attempt.assessment_id,
        ).first()
        if not question:
            raise QuestionNotInAssessment(
                f"Question {question_id} is not part of assessment {attempt.assessment_id}"
            )

        record = self.db.query(AssessmentAnswer).filter(
            AssessmentAnswer.attempt_id == attempt.id,
            AssessmentAnswer.question_id == question_id,
        ).first()
        if record is None:
            record = AssessmentAnswer(attempt_id=attempt.id, question_id=question_id)
            self.db.add(record)
        record.answer_data = answer_data
        record.answered_at = self.clock()

        # Re-check the status inside this transaction so a save cannot land
        # on an attempt that was finalized after it was loaded
        still_active = self.db.query(AssessmentAttempt).filter(
            AssessmentAttempt.id == attempt.id,
            AssessmentAttempt.status == AttemptStatus.IN_PROGRESS.value,
        ).update({AssessmentAttempt.updated_at: self.clock()}, synchronize_session=False)
        if not still_active:
            self.db.rollback()
            raise AttemptNotActive()

        self.db.commit()
        self.db.refresh(record)
        return record

    # ============= Submit / expire =============

    def submit(
        self,
        attempt_id: int,
        answers: Optional[Mapping[int, Any]] = None,
        trainee_id: Optional[int] = None,
    ) -> AssessmentAttempt:
        """
        Finalize an attempt with the trainee's answers.

        Submitted answers override auto-saved ones for the same question. A
        submission arriving after the deadline (plus grace) is still scored
        but recorded as expired. Calling this on a finished attempt returns
        the stored result unchanged.
        """
        attempt = self.get_attempt(attempt_id, trainee_id)
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            logger.info(f"Submit on finished attempt {attempt.id} ({attempt.status}); returning stored result")
            return attempt

        now = self.clock()
        status = AttemptStatus.SUBMITTED
        if self.is_overdue(attempt, now, self.grace_seconds):
            logger.warning(f"Attempt {attempt.id} submitted after its deadline; recording as expired")
            status = AttemptStatus.EXPIRED

        self._finalize(attempt, dict(answers or {}), status, now)
        return attempt

    def expire(self, attempt_id: int) -> AssessmentAttempt:
        """
        Close an overdue attempt, scoring whatever answers were saved.

        Calling this on a finished attempt returns it unchanged.
        """
        attempt, _ = self.try_expire(attempt_id)
        return attempt

    def try_expire(self, attempt_id: int) -> Tuple[AssessmentAttempt, bool]:
        """
        Same as `expire`, also reporting whether this call did the transition.

        Returns:
            (attempt, expired_now)
        """
        attempt = self.get_attempt(attempt_id)
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            return attempt, False
        return attempt, self._finalize(attempt, {}, AttemptStatus.EXPIRED, self.clock())

    def _finalize(
        self,
        attempt: AssessmentAttempt,
        submitted: Dict[int, Any],
        status: AttemptStatus,
        now: datetime,
    ) -> bool:
        """
        Claim the attempt, score it and persist the result in one transaction.

        Returns:
            False if another request finalized the attempt first
        """
        claimed = self.db.query(AssessmentAttempt).filter(
            AssessmentAttempt.id == attempt.id,
            AssessmentAttempt.status == AttemptStatus.IN_PROGRESS.value,
        ).update(
            {AssessmentAttempt.status: status.value, AssessmentAttempt.submitted_at: now},
            synchronize_session=False,
        )
        if not claimed:
            self.db.rollback()
            self.db.refresh(attempt)
            logger.info(f"Attempt {attempt.id} was already finalized as {attempt.status}")
            return False

        saved = self.db.query(AssessmentAnswer).populate_existing().filter(
            AssessmentAnswer.attempt_id == attempt.id
        ).all()
        records = {record.question_id: record for record in saved if record.question_id is not None}

        merged = {question_id: record.answer_data for question_id, record in records.items()}
        merged.update(submitted)

        assessment = attempt.assessment
        result = score_answers(build_question_snapshot(assessment.questions), merged)

        for question_result in result.per_question:
            qid = question_result.question_id
            if qid not in merged:
                continue
            record = records.get(qid)
            if record is None:
                record = AssessmentAnswer(attempt_id=attempt.id, question_id=qid, answered_at=now)
                self.db.add(record)
            record.answer_data = merged[qid]
            record.is_correct = question_result.is_correct
            record.points_earned = question_result.points_earned

        attempt.status = status.value
        attempt.submitted_at = now
        attempt.score = result.score
        attempt.total_points = result.total_points
        attempt.percentage = result.percentage
        attempt.is_passed = is_passed(result.percentage, assessment.passing_score)
        self.db.commit()
        self.db.refresh(attempt)

        logger.info(
            f"Attempt {attempt.id} {status.value}: score={result.score}/{result.total_points} "
            f"({result.percentage}%), passed={attempt.is_passed}"
        )
        self._record(
            SecurityEventType.ASSESSMENT_COMPLETED,
            attempt,
            detail=status.value,
            additional_data={
                "score": result.score,
                "percentage": result.percentage,
                "is_passed": attempt.is_passed,
                **self._integrity_summary(attempt),
            },
        )
        return True

    # ============= Integrity logging =============

    def _integrity_summary(self, attempt: AssessmentAttempt) -> Dict[str, Any]:
        """
        Tab switches, suspicious events and completion time for the completion
        event. Only events already written by the recorder are counted.
        """
        logs = self.db.query(SecurityLog.event_type, SecurityLog.severity).filter(
            SecurityLog.attempt_id == attempt.id
        ).all()
        elapsed = as_utc(attempt.submitted_at) - as_utc(attempt.started_at)
        return {
            "tab_switches": sum(1 for event_type, _ in logs if event_type == SecurityEventType.TAB_SWITCH.value),
            "suspicious_activities": sum(1 for event_type, severity in logs if is_suspicious(event_type, severity)),
            "completion_time_seconds": max(int(elapsed.total_seconds()), 0),
        }

    def _record(self, event_type: SecurityEventType, attempt: AssessmentAttempt, **kwargs: Any) -> None:
        if self.recorder is None:
            return
        self.recorder.record(
            event_type,
            trainee_id=attempt.trainee_id,
            assessment_id=attempt.assessment_id,
            attempt_id=attempt.id,
            **kwargs,
        )
