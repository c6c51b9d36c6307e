"""
Read-only rollups over attempts and security logs.
"""
import logging
from math import ceil
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from assessment_engine.core.assessment.attempt_manager import AttemptManager
from assessment_engine.core.assessment.eligibility_checker import EligibilityChecker
from assessment_engine.core.assessment.scoring import QuestionType
from assessment_engine.core.integrity.events import SUSPICIOUS_EVENT_TYPES, SUSPICIOUS_SEVERITIES
from assessment_engine.core.integrity.summary import summarize_security_logs
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.attempt import TERMINAL_STATUSES, AssessmentAttempt, AttemptStatus
from assessment_engine.models.security_log import SecurityLog
from assessment_engine.schemas.assessment import (
    AssessmentPublic,
    LastAttemptInfo,
    QuestionPublic,
    TraineeAssessmentSummary,
)
from assessment_engine.schemas.attempt import (
    AssessmentResults,
    AssessmentStats,
    AttemptOut,
    TraineeAssessmentStats,
    TraineeResultRow,
)
from assessment_engine.schemas.security_log import (
    Pagination,
    SecurityLogFilter,
    SecurityLogOut,
    SecurityLogPage,
    SecurityLogsSummary,
)

logger = logging.getLogger(__name__)


def assessment_to_public(assessment: Assessment) -> AssessmentPublic:
    return AssessmentPublic(
        id=assessment.id,
        course_id=assessment.course_id,
        title=assessment.title,
        description=assessment.description,
        instructions=assessment.instructions,
        time_limit=assessment.time_limit,
        max_attempts=assessment.max_attempts,
        passing_score=assessment.passing_score,
        show_results_immediately=bool(assessment.show_results_immediately),
        questions_count=len(assessment.questions),
        total_points=sum(float(q.points or 0) for q in assessment.questions),
    )


def attempt_to_out(
    attempt: AssessmentAttempt,
    manager: Optional[AttemptManager] = None,
    reveal_answers: Optional[bool] = None
) -> AttemptOut:
    """
    Build the trainee-facing view of an attempt.

    Per-answer correctness and points are blanked unless the assessment shows
    results immediately; instructor views pass `reveal_answers=True`.
    """
    out = AttemptOut.model_validate(attempt)
    if manager is not None:
        out.time_remaining = manager.time_remaining(attempt)
    if reveal_answers is None:
        reveal_answers = attempt.assessment.show_results_immediately
    if not reveal_answers:
        for answer in out.answers:
            answer.is_correct = None
            answer.points_earned = None
    return out


def questions_for_attempt(attempt: AssessmentAttempt) -> List[QuestionPublic]:
    """Questions without correctness data, each carrying the trainee's saved answer."""
    saved = {answer.question_id: answer.answer_data for answer in attempt.answers}
    questions = []
    for question in attempt.assessment.questions:
        public = QuestionPublic.model_validate(question)
        public.saved_answer = saved.get(question.id)
        questions.append(public)
    return questions


def answer_key(assessment: Assessment) -> Tuple[Dict[int, Any], Dict[int, str]]:
    """
    Correct answers and explanations keyed by question id.

    Returns:
        (correct_answers, explanations); multiple choice maps to an option id,
        checkbox to a list of option ids, identification to the answer text
    """
    correct_answers: Dict[int, Any] = {}
    explanations: Dict[int, str] = {}
    for question in assessment.questions:
        correct_ids = [option.id for option in question.options if option.is_correct]
        if question.question_type == QuestionType.MULTIPLE_CHOICE.value:
            correct_answers[question.id] = correct_ids[0] if correct_ids else None
        elif question.question_type == QuestionType.CHECKBOX.value:
            correct_answers[question.id] = correct_ids
        else:
            correct_answers[question.id] = question.correct_answer
        if question.explanation:
            explanations[question.id] = question.explanation
    return correct_answers, explanations


def _best_percentage(attempts: List[AssessmentAttempt]) -> Optional[float]:
    percentages = [
        a.percentage for a in attempts
        if a.status in TERMINAL_STATUSES and a.percentage is not None
    ]
    return max(percentages) if percentages else None


def _latest_finished(attempts: List[AssessmentAttempt]) -> Optional[AssessmentAttempt]:
    finished = [a for a in attempts if a.status in TERMINAL_STATUSES]
    if not finished:
        return None
    return max(finished, key=lambda a: a.attempt_number)


class AssessmentReporter:
    """Builds trainee and instructor rollups. Never writes."""

    def __init__(self, db: Session):
        self.db = db
        self.eligibility = EligibilityChecker(db)

    def _attempts(self, assessment_id: Optional[int] = None, trainee_id: Optional[int] = None) -> List[AssessmentAttempt]:
        query = self.db.query(AssessmentAttempt)
        if assessment_id is not None:
            query = query.filter(AssessmentAttempt.assessment_id == assessment_id)
        if trainee_id is not None:
            query = query.filter(AssessmentAttempt.trainee_id == trainee_id)
        return query.order_by(AssessmentAttempt.attempt_number).all()

    def get_trainee_assessment_summary(self, assessment: Assessment, trainee_id: int) -> TraineeAssessmentSummary:
        """
        Rollup of one trainee's attempts at one assessment.

        Args:
            assessment: Assessment
            trainee_id: Trainee ID

        Returns:
            TraineeAssessmentSummary with counts, best score, last finished
            attempt and whether a new attempt may be started
        """
        attempts = self._attempts(assessment.id, trainee_id)
        eligibility = self.eligibility.can_start(assessment, trainee_id)
        active = next((a for a in attempts if a.status == AttemptStatus.IN_PROGRESS.value), None)
        last = _latest_finished(attempts)

        return TraineeAssessmentSummary(
            assessment_id=assessment.id,
            trainee_id=trainee_id,
            attempts_count=len(attempts),
            attempts_remaining=eligibility.attempts_remaining,
            best_percentage=_best_percentage(attempts),
            last_attempt=LastAttemptInfo(
                id=last.id,
                attempt_number=last.attempt_number,
                status=last.status,
                percentage=last.percentage,
                is_passed=last.is_passed,
                submitted_at=last.submitted_at,
            ) if last else None,
            has_active_attempt=active is not None,
            active_attempt_id=active.id if active else None,
            can_attempt=eligibility.allowed,
            reason=eligibility.reason,
        )

    def get_attempt_history(self, trainee_id: int, assessment_id: Optional[int] = None) -> List[AssessmentAttempt]:
        """Trainee's attempts, newest first."""
        query = self.db.query(AssessmentAttempt).filter(AssessmentAttempt.trainee_id == trainee_id)
        if assessment_id is not None:
            query = query.filter(AssessmentAttempt.assessment_id == assessment_id)
        return query.order_by(AssessmentAttempt.started_at.desc(), AssessmentAttempt.id.desc()).all()

    def get_trainee_stats(self, trainee_id: int) -> TraineeAssessmentStats:
        """Overall standing of a trainee across every assessment attempted."""
        by_assessment: Dict[int, List[AssessmentAttempt]] = {}
        for attempt in self._attempts(trainee_id=trainee_id):
            by_assessment.setdefault(attempt.assessment_id, []).append(attempt)

        best_scores = []
        completed = passed = pending = 0
        for attempts in by_assessment.values():
            if any(a.status in TERMINAL_STATUSES for a in attempts):
                completed += 1
            if any(a.is_passed for a in attempts if a.status in TERMINAL_STATUSES):
                passed += 1
            if any(a.status == AttemptStatus.IN_PROGRESS.value for a in attempts):
                pending += 1
            best = _best_percentage(attempts)
            if best is not None:
                best_scores.append(best)

        return TraineeAssessmentStats(
            total_assessments=len(by_assessment),
            completed_assessments=completed,
            passed_assessments=passed,
            average_score=round(sum(best_scores) / len(best_scores), 2) if best_scores else 0.0,
            pending_assessments=pending,
        )

    def get_assessment_results(self, assessment: Assessment) -> AssessmentResults:
        """Every trainee's attempts at an assessment, grouped for instructor review."""
        grouped: Dict[int, List[AssessmentAttempt]] = {}
        for attempt in self._attempts(assessment_id=assessment.id):
            grouped.setdefault(attempt.trainee_id, []).append(attempt)

        rows = []
        for trainee_id, attempts in sorted(grouped.items()):
            latest = _latest_finished(attempts)
            last_dates = [a.submitted_at or a.started_at for a in attempts]
            rows.append(TraineeResultRow(
                trainee_id=trainee_id,
                attempts_count=len(attempts),
                best_percentage=_best_percentage(attempts),
                latest=attempt_to_out(latest, reveal_answers=True) if latest else None,
                last_attempt_date=max(last_dates) if last_dates else None,
                attempts=[attempt_to_out(a, reveal_answers=True) for a in attempts],
            ))

        return AssessmentResults(assessment=assessment_to_public(assessment), trainees=rows)

    def get_assessment_stats(self, assessment: Assessment) -> AssessmentStats:
        attempts = self._attempts(assessment_id=assessment.id)
        finished = [a for a in attempts if a.status in TERMINAL_STATUSES]
        passed = [a for a in finished if a.is_passed]
        percentages = [a.percentage for a in finished if a.percentage is not None]

        return AssessmentStats(
            total_attempts=len(attempts),
            submitted_attempts=len(finished),
            passed_attempts=len(passed),
            average_score=round(sum(percentages) / len(percentages), 2) if percentages else 0.0,
            pass_rate=round(len(passed) / len(finished) * 100, 2) if finished else 0.0,
            unique_trainees=len({a.trainee_id for a in attempts}),
        )


class SecurityLogReporter:
    """Queries over the append-only security log."""

    def __init__(self, db: Session):
        self.db = db

    def _filtered(self, filters: SecurityLogFilter) -> Query:
        query = self.db.query(SecurityLog)
        if filters.trainee_id is not None:
            query = query.filter(SecurityLog.trainee_id == filters.trainee_id)
        if filters.assessment_id is not None:
            query = query.filter(SecurityLog.assessment_id == filters.assessment_id)
        if filters.attempt_id is not None:
            query = query.filter(SecurityLog.attempt_id == filters.attempt_id)
        if filters.event_type is not None:
            query = query.filter(SecurityLog.event_type == filters.event_type.value)
        if filters.severity is not None:
            query = query.filter(SecurityLog.severity == filters.severity.value)
        if filters.since is not None:
            query = query.filter(SecurityLog.event_timestamp >= filters.since)
        if filters.until is not None:
            query = query.filter(SecurityLog.event_timestamp <= filters.until)
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            query = query.filter(or_(
                SecurityLog.activity.ilike(pattern),
                SecurityLog.event_type.ilike(pattern),
            ))
        if filters.suspicious is not None:
            suspicious = or_(
                SecurityLog.event_type.in_(sorted(SUSPICIOUS_EVENT_TYPES)),
                SecurityLog.severity.in_(sorted(SUSPICIOUS_SEVERITIES)),
            )
            query = query.filter(suspicious if filters.suspicious else ~suspicious)
        return query

    def list_logs(self, filters: SecurityLogFilter, page: int = 1, per_page: int = 50) -> SecurityLogPage:
        """Paginated log entries, newest first."""
        query = self._filtered(filters)
        total = query.count()
        logs = query.order_by(
            SecurityLog.event_timestamp.desc(), SecurityLog.id.desc()
        ).offset((page - 1) * per_page).limit(per_page).all()

        return SecurityLogPage(
            data=[SecurityLogOut.model_validate(log) for log in logs],
            pagination=Pagination(
                current_page=page,
                per_page=per_page,
                total=total,
                last_page=max(ceil(total / per_page), 1),
            ),
        )

    def summarize(self, filters: SecurityLogFilter) -> SecurityLogsSummary:
        return summarize_security_logs(self._filtered(filters).all())
