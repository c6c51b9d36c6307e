"""
Tests for the attempt state machine: start/resume, auto-save, submit, expire
and the storage-level guards behind them.
"""
import pytest
from sqlalchemy.exc import IntegrityError

from factories import (
    TRAINEE_ID,
    FakeClock,
    checkbox_question,
    correct_option_id,
    correct_option_ids,
    identification_question,
    make_assessment,
    make_attempt,
    make_security_log,
    mc_question,
    wrong_option_id,
)

from assessment_engine.core.assessment.attempt_manager import AttemptManager
from assessment_engine.core.assessment.eligibility_checker import EligibilityResult
from assessment_engine.core.exceptions import (
    AssessmentNotFound,
    AttemptAlreadyActive,
    AttemptLimitExceeded,
    AttemptNotActive,
    AttemptNotFound,
    QuestionNotInAssessment,
)
from assessment_engine.db.base import SessionLocal
from assessment_engine.models.attempt import AssessmentAnswer, AssessmentAttempt, AttemptStatus
from assessment_engine.models.security_log import SecurityLog
from assessment_engine.services.security_recorder import SecurityEventRecorder
from assessment_engine.utils.datetime_helpers import utcnow


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(db, recorder, clock):
    return AttemptManager(db, recorder, grace_seconds=30, clock=clock)


def _answers(db, attempt_id):
    return {
        answer.question_id: answer
        for answer in db.query(AssessmentAnswer).filter(AssessmentAnswer.attempt_id == attempt_id).all()
    }


class TestStartOrResume:

    def test_start_creates_first_attempt(self, db, manager, recorder):
        assessment = make_assessment(db)
        attempt, resumed = manager.start_or_resume(assessment.id, TRAINEE_ID)

        assert resumed is False
        assert attempt.attempt_number == 1
        assert attempt.status == "in_progress"
        assert attempt.submitted_at is None

        recorder.drain()
        logs = db.query(SecurityLog).all()
        assert [log.event_type for log in logs] == ["assessment_started"]
        assert logs[0].attempt_id == attempt.id

    def test_resume_returns_same_attempt_without_new_event(self, db, manager, recorder):
        assessment = make_assessment(db)
        first, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        second, resumed = manager.start_or_resume(assessment.id, TRAINEE_ID)

        assert resumed is True
        assert second.id == first.id
        assert db.query(AssessmentAttempt).count() == 1
        assert recorder.drain() == 1

    def test_unknown_assessment(self, manager):
        with pytest.raises(AssessmentNotFound):
            manager.start_or_resume(12345, TRAINEE_ID)

    def test_start_while_active_raises(self, db, manager):
        assessment = make_assessment(db)
        active = make_attempt(db, assessment)

        with pytest.raises(AttemptAlreadyActive) as exc_info:
            manager.start(assessment, TRAINEE_ID)
        assert exc_info.value.active_attempt_id == active.id

    def test_attempt_numbers_increase(self, db, manager):
        assessment = make_assessment(db, max_attempts=3)
        first, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        manager.submit(first.id, {})
        second, resumed = manager.start_or_resume(assessment.id, TRAINEE_ID)

        assert resumed is False
        assert second.attempt_number == 2

    def test_limit_exceeded(self, db, manager):
        assessment = make_assessment(db, max_attempts=1)
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        manager.submit(attempt.id, {})

        with pytest.raises(AttemptLimitExceeded):
            manager.start_or_resume(assessment.id, TRAINEE_ID)

    def test_racing_start_is_reported_as_already_active(self, db, manager, monkeypatch):
        assessment = make_assessment(db)
        active = make_attempt(db, assessment)
        # Stale eligibility read: the other request's attempt is not visible yet
        monkeypatch.setattr(
            manager.eligibility,
            "can_start",
            lambda *_: EligibilityResult(allowed=True, reason=None, attempts_count=0, attempts_remaining=2),
        )

        with pytest.raises(AttemptAlreadyActive) as exc_info:
            manager.start(assessment, TRAINEE_ID)
        assert exc_info.value.active_attempt_id == active.id
        assert db.query(AssessmentAttempt).count() == 1

    def test_storage_rejects_second_in_progress_attempt(self, db):
        assessment = make_assessment(db)
        make_attempt(db, assessment, attempt_number=1)

        db.add(AssessmentAttempt(
            assessment_id=assessment.id,
            trainee_id=TRAINEE_ID,
            attempt_number=2,
            status="in_progress",
            started_at=utcnow(),
        ))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()


class TestSaveAnswer:

    def test_upsert_keeps_one_record_per_question(self, db, manager):
        assessment = make_assessment(db)
        question = assessment.questions[0]
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)

        manager.save_answer(attempt.id, TRAINEE_ID, question.id, wrong_option_id(question))
        record = manager.save_answer(attempt.id, TRAINEE_ID, question.id, correct_option_id(question))

        answers = _answers(db, attempt.id)
        assert len(answers) == 1
        assert record.answer_data == correct_option_id(question)
        assert record.is_correct is None
        assert record.points_earned is None

    def test_foreign_question_rejected(self, db, manager):
        assessment = make_assessment(db)
        other = make_assessment(db, title="Other")
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)

        with pytest.raises(QuestionNotInAssessment):
            manager.save_answer(attempt.id, TRAINEE_ID, other.questions[0].id, 1)

    def test_finished_attempt_rejected(self, db, manager):
        assessment = make_assessment(db)
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        manager.submit(attempt.id, {})

        with pytest.raises(AttemptNotActive):
            manager.save_answer(attempt.id, TRAINEE_ID, assessment.questions[0].id, 1)

    def test_other_trainees_attempt_not_found(self, db, manager):
        assessment = make_assessment(db)
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)

        with pytest.raises(AttemptNotFound):
            manager.save_answer(attempt.id, 999, assessment.questions[0].id, 1)


class TestSubmit:

    def test_scores_and_stores_snapshot(self, db, manager):
        assessment = make_assessment(db, questions=[
            mc_question(points=1), checkbox_question(points=2), identification_question(points=1),
        ], passing_score=70)
        mc, checkbox, ident = assessment.questions
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)

        attempt = manager.submit(attempt.id, {
            mc.id: correct_option_id(mc),
            checkbox.id: correct_option_ids(checkbox),
            ident.id: " starboard ",
        })

        assert attempt.status == "submitted"
        assert attempt.submitted_at is not None
        assert attempt.score == 4.0
        assert attempt.total_points == 4.0
        assert attempt.percentage == 100.0
        assert attempt.is_passed is True

        answers = _answers(db, attempt.id)
        assert answers[checkbox.id].is_correct is True
        assert answers[checkbox.id].points_earned == 2.0

    def test_submitted_answers_override_saved_ones(self, db, manager):
        assessment = make_assessment(db)
        first, second = assessment.questions
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        manager.save_answer(attempt.id, TRAINEE_ID, first.id, wrong_option_id(first))
        manager.save_answer(attempt.id, TRAINEE_ID, second.id, correct_option_id(second))

        attempt = manager.submit(attempt.id, {first.id: correct_option_id(first)})

        assert attempt.score == 2.0
        answers = _answers(db, attempt.id)
        assert len(answers) == 2
        assert answers[first.id].answer_data == correct_option_id(first)

    def test_unanswered_questions_score_zero_without_records(self, db, manager):
        assessment = make_assessment(db)
        first, second = assessment.questions
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)

        attempt = manager.submit(attempt.id, {first.id: correct_option_id(first)})

        assert attempt.score == 1.0
        assert attempt.percentage == 50.0
        assert attempt.is_passed is True
        assert set(_answers(db, attempt.id)) == {first.id}

    def test_submit_is_idempotent(self, db, manager, recorder):
        assessment = make_assessment(db)
        first, second = assessment.questions
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        manager.submit(attempt.id, {first.id: correct_option_id(first)})

        again = manager.submit(attempt.id, {
            first.id: correct_option_id(first), second.id: correct_option_id(second),
        })

        assert again.id == attempt.id
        assert again.score == 1.0
        assert len(_answers(db, attempt.id)) == 1

        recorder.drain()
        completed = db.query(SecurityLog).filter(SecurityLog.event_type == "assessment_completed").all()
        assert len(completed) == 1
        assert completed[0].activity.startswith("assessment_completed: submitted at ")

    def test_completion_event_summarizes_integrity_trail(self, db, manager, recorder, clock):
        assessment = make_assessment(db)
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        recorder.drain()
        make_security_log(db, assessment, event_type="tab_switch", attempt_id=attempt.id)
        make_security_log(db, assessment, event_type="tab_switch", attempt_id=attempt.id)
        make_security_log(db, assessment, event_type="developer_tools", severity="high", attempt_id=attempt.id)
        # Not tied to this attempt
        make_security_log(db, assessment, event_type="tab_switch")
        clock.advance(minutes=4, seconds=5)

        manager.submit(attempt.id, {})
        recorder.drain()

        completed = db.query(SecurityLog).filter(SecurityLog.event_type == "assessment_completed").one()
        assert completed.additional_data["tab_switches"] == 2
        assert completed.additional_data["suspicious_activities"] == 3
        assert completed.additional_data["completion_time_seconds"] == 245
        assert completed.additional_data["score"] == 0.0

    def test_submission_within_grace_is_submitted(self, db, manager, clock):
        assessment = make_assessment(db, time_limit=10)
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        clock.advance(minutes=10, seconds=20)

        assert manager.submit(attempt.id, {}).status == "submitted"

    def test_late_submission_is_scored_but_expired(self, db, manager, clock):
        assessment = make_assessment(db, time_limit=10)
        question = assessment.questions[0]
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        clock.advance(minutes=10, seconds=31)

        attempt = manager.submit(attempt.id, {question.id: correct_option_id(question)})

        assert attempt.status == "expired"
        assert attempt.score == 1.0
        assert attempt.percentage == 50.0

    def test_score_is_not_recomputed_after_question_changes(self, db, manager):
        assessment = make_assessment(db)
        question = assessment.questions[0]
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        manager.submit(attempt.id, {question.id: correct_option_id(question)})

        for option in question.options:
            option.is_correct = not option.is_correct
        db.commit()

        db.expire_all()
        stored = manager.submit(attempt.id, {})
        assert stored.score == 1.0
        assert _answers(db, attempt.id)[question.id].is_correct is True


class TestExpire:

    def test_expire_scores_saved_answers(self, db, manager, clock):
        assessment = make_assessment(db, time_limit=10)
        question = assessment.questions[0]
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        manager.save_answer(attempt.id, TRAINEE_ID, question.id, correct_option_id(question))
        clock.advance(minutes=11)

        attempt, expired_now = manager.try_expire(attempt.id)

        assert expired_now is True
        assert attempt.status == "expired"
        assert attempt.submitted_at is not None
        assert attempt.score == 1.0
        assert _answers(db, attempt.id)[question.id].points_earned == 1.0

    def test_expire_on_submitted_attempt_is_noop(self, db, manager):
        assessment = make_assessment(db)
        question = assessment.questions[0]
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        manager.submit(attempt.id, {question.id: correct_option_id(question)})

        attempt, expired_now = manager.try_expire(attempt.id)

        assert expired_now is False
        assert attempt.status == "submitted"
        assert attempt.score == 1.0

    def test_submit_after_expiry_returns_expired_result(self, db, manager):
        assessment = make_assessment(db)
        question = assessment.questions[0]
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        manager.expire(attempt.id)

        result = manager.submit(attempt.id, {question.id: correct_option_id(question)})

        assert result.status == "expired"
        assert result.score == 0.0

    def test_losing_finalizer_sees_winners_result(self, db, manager, recorder):
        assessment = make_assessment(db)
        question = assessment.questions[0]
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        loaded = manager.get_attempt(attempt.id)

        # Another request submits first, through its own session
        other_db = SessionLocal()
        try:
            AttemptManager(other_db, recorder).submit(attempt.id, {question.id: correct_option_id(question)})
        finally:
            other_db.close()

        won = manager._finalize(loaded, {}, AttemptStatus.EXPIRED, manager.clock())

        assert won is False
        assert loaded.status == "submitted"
        assert loaded.score == 1.0


class TestTimeRemaining:

    def test_untimed_attempt_has_no_countdown(self, db, manager):
        assessment = make_assessment(db, time_limit=None)
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)

        assert manager.time_remaining(attempt) is None
        assert manager.is_overdue(attempt) is False

    def test_countdown(self, db, manager, clock):
        assessment = make_assessment(db, time_limit=10)
        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        clock.advance(minutes=4)

        assert manager.time_remaining(attempt) == 360
        clock.advance(minutes=7)
        assert manager.time_remaining(attempt) == 0
        assert manager.is_overdue(attempt) is True


class TestRecorderFailures:

    def test_storage_failure_never_reaches_the_attempt_flow(self, db, clock):
        def broken_session_factory():
            raise RuntimeError("database unavailable")

        recorder = SecurityEventRecorder(broken_session_factory)
        manager = AttemptManager(db, recorder, clock=clock)
        assessment = make_assessment(db)
        question = assessment.questions[0]

        attempt, _ = manager.start_or_resume(assessment.id, TRAINEE_ID)
        attempt = manager.submit(attempt.id, {question.id: correct_option_id(question)})

        assert attempt.status == "submitted"
        assert recorder.drain() == 2
        assert recorder.failed_writes == 2
