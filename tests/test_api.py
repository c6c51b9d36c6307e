"""
End-to-end tests through the HTTP surface.
"""
from datetime import timedelta

import pytest

from factories import (
    correct_option_id,
    make_assessment,
    make_attempt,
    wrong_option_id,
)

from assessment_engine.models.attempt import AssessmentAttempt
from assessment_engine.utils.datetime_helpers import utcnow

TRAINEE = "/api/v1/trainee"
ADMIN = "/api/v1/admin"


@pytest.fixture
def assessment(db):
    # Two 1-point multiple choice questions, pass mark 50%, two attempts, 10 minutes
    return make_assessment(db, passing_score=50, max_attempts=2, time_limit=10)


def _start(client, headers, assessment_id):
    return client.post(f"{TRAINEE}/assessments/{assessment_id}/start", headers=headers)


def _age_attempt(db, attempt_id, minutes):
    db.query(AssessmentAttempt).filter(AssessmentAttempt.id == attempt_id).update(
        {AssessmentAttempt.started_at: utcnow() - timedelta(minutes=minutes)},
        synchronize_session=False,
    )
    db.commit()


class TestAssessmentLifecycle:

    def test_full_scenario(self, client, db, recorder, assessment, trainee_headers, admin_headers):
        q1, q2 = assessment.questions

        # First attempt: one right, one wrong -> 1/2 = 50% -> passed
        response = _start(client, trainee_headers, assessment.id)
        assert response.status_code == 201
        body = response.json()
        assert body["resumed"] is False
        assert body["attempt"]["attempt_number"] == 1
        assert body["time_limit"] == 10
        assert 590 <= body["time_remaining"] <= 600
        assert len(body["questions"]) == 2
        assert "is_correct" not in body["questions"][0]["options"][0]
        first_id = body["attempt"]["id"]

        response = client.post(
            f"{TRAINEE}/assessments/{assessment.id}/security-log",
            json={"event_type": "tab_switch", "attempt_id": first_id},
            headers=trainee_headers,
        )
        assert response.status_code == 202
        assert response.json() == {"accepted": 1, "dropped": 0}

        response = client.post(
            f"{TRAINEE}/assessment-attempts/{first_id}/submit",
            json={"answers": [
                {"question_id": q1.id, "answer_data": correct_option_id(q1)},
                {"question_id": q2.id, "answer_data": wrong_option_id(q2)},
            ]},
            headers=trainee_headers,
        )
        assert response.status_code == 200
        result = response.json()
        assert result["status"] == "submitted"
        assert result["score"] == 1.0
        assert result["total_points"] == 2.0
        assert result["percentage"] == 50.0
        assert result["is_passed"] is True

        # Second attempt: never answered, left idle past the limit
        response = _start(client, trainee_headers, assessment.id)
        assert response.status_code == 201
        second_id = response.json()["attempt"]["id"]
        assert response.json()["attempt"]["attempt_number"] == 2

        _age_attempt(db, second_id, minutes=11)
        response = client.post(f"{ADMIN}/attempts/expire-overdue", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["expired_attempt_ids"] == [second_id]

        response = client.get(f"{TRAINEE}/assessment-attempts/{second_id}", headers=trainee_headers)
        expired = response.json()
        assert expired["status"] == "expired"
        assert expired["score"] == 0.0
        assert expired["percentage"] == 0.0
        assert expired["is_passed"] is False

        # Third start: limit reached
        response = _start(client, trainee_headers, assessment.id)
        assert response.status_code == 403
        assert response.json()["code"] == "AttemptLimitExceeded"

        summary = client.get(f"{TRAINEE}/assessments/{assessment.id}/summary", headers=trainee_headers).json()
        assert summary["attempts_count"] == 2
        assert summary["attempts_remaining"] == 0
        assert summary["best_percentage"] == 50.0
        assert summary["last_attempt"]["id"] == second_id
        assert summary["can_attempt"] is False

        # Integrity trail
        recorder.drain()
        response = client.get(f"{ADMIN}/assessments/{assessment.id}/security/logs", headers=admin_headers)
        assert response.status_code == 200
        event_types = sorted(log["event_type"] for log in response.json()["data"])
        assert event_types == [
            "assessment_completed", "assessment_completed",
            "assessment_started", "assessment_started",
            "tab_switch",
        ]

    def test_start_resumes_with_saved_answers(self, client, assessment, trainee_headers):
        q1 = assessment.questions[0]
        first = _start(client, trainee_headers, assessment.id).json()
        attempt_id = first["attempt"]["id"]

        response = client.post(
            f"{TRAINEE}/assessment-attempts/{attempt_id}/answers",
            json={"question_id": q1.id, "answer_data": {"option_id": correct_option_id(q1)}},
            headers=trainee_headers,
        )
        assert response.status_code == 200

        resumed = _start(client, trainee_headers, assessment.id).json()
        assert resumed["resumed"] is True
        assert resumed["attempt"]["id"] == attempt_id
        saved = {q["id"]: q["saved_answer"] for q in resumed["questions"]}
        assert saved[q1.id] == {"option_id": correct_option_id(q1)}

    def test_submit_is_idempotent(self, client, assessment, trainee_headers):
        q1, q2 = assessment.questions
        attempt_id = _start(client, trainee_headers, assessment.id).json()["attempt"]["id"]
        url = f"{TRAINEE}/assessment-attempts/{attempt_id}/submit"

        first = client.post(url, json={"answers": [
            {"question_id": q1.id, "answer_data": correct_option_id(q1)},
        ]}, headers=trainee_headers).json()
        second = client.post(url, json={"answers": [
            {"question_id": q1.id, "answer_data": correct_option_id(q1)},
            {"question_id": q2.id, "answer_data": correct_option_id(q2)},
        ]}, headers=trainee_headers).json()

        assert second["score"] == first["score"] == 1.0
        assert second["submitted_at"] == first["submitted_at"]

    def test_result_reveals_answers_when_configured(self, client, assessment, trainee_headers):
        q1 = assessment.questions[0]
        attempt_id = _start(client, trainee_headers, assessment.id).json()["attempt"]["id"]

        response = client.get(f"{TRAINEE}/assessment-attempts/{attempt_id}/result", headers=trainee_headers)
        assert response.status_code == 400

        client.post(f"{TRAINEE}/assessment-attempts/{attempt_id}/submit", json={"answers": []}, headers=trainee_headers)
        result = client.get(f"{TRAINEE}/assessment-attempts/{attempt_id}/result", headers=trainee_headers).json()

        assert result["attempt"]["status"] == "submitted"
        assert result["correct_answers"][str(q1.id)] == correct_option_id(q1)
        assert result["explanations"][str(q1.id)] == "Only one option is right."

    def test_result_hides_answers_when_configured(self, client, db, trainee_headers):
        assessment = make_assessment(db, show_results_immediately=False)
        attempt_id = _start(client, trainee_headers, assessment.id).json()["attempt"]["id"]
        client.post(f"{TRAINEE}/assessment-attempts/{attempt_id}/submit", json={"answers": []}, headers=trainee_headers)

        result = client.get(f"{TRAINEE}/assessment-attempts/{attempt_id}/result", headers=trainee_headers).json()

        assert result["correct_answers"] == {}
        assert result["explanations"] == {}

    def test_hidden_results_blank_per_answer_correctness(self, client, db, trainee_headers, admin_headers):
        assessment = make_assessment(db, show_results_immediately=False)
        q1, q2 = assessment.questions
        attempt_id = _start(client, trainee_headers, assessment.id).json()["attempt"]["id"]

        submitted = client.post(
            f"{TRAINEE}/assessment-attempts/{attempt_id}/submit",
            json={"answers": [
                {"question_id": q1.id, "answer_data": correct_option_id(q1)},
                {"question_id": q2.id, "answer_data": wrong_option_id(q2)},
            ]},
            headers=trainee_headers,
        ).json()
        viewed = client.get(f"{TRAINEE}/assessment-attempts/{attempt_id}", headers=trainee_headers).json()

        for body in (submitted, viewed):
            assert len(body["answers"]) == 2
            assert all(answer["is_correct"] is None for answer in body["answers"])
            assert all(answer["points_earned"] is None for answer in body["answers"])
            assert body["percentage"] == 50.0

        # Instructors still see which answers were right
        results = client.get(f"{ADMIN}/assessments/{assessment.id}/results", headers=admin_headers).json()
        answers = results["trainees"][0]["latest"]["answers"]
        assert sorted(answer["is_correct"] for answer in answers) == [False, True]


class TestErrors:

    def test_missing_token(self, client, assessment):
        assert client.post(f"{TRAINEE}/assessments/{assessment.id}/start").status_code == 401

    def test_invalid_token(self, client, assessment):
        response = _start(client, {"Authorization": "Bearer not-a-jwt"}, assessment.id)
        assert response.status_code == 401

    def test_unknown_assessment(self, client, trainee_headers):
        response = _start(client, trainee_headers, 9999)
        assert response.status_code == 404
        assert response.json()["code"] == "AssessmentNotFound"

    def test_start_while_active_via_direct_insert_resumes(self, client, db, assessment, trainee_headers):
        active = make_attempt(db, assessment)
        body = _start(client, trainee_headers, assessment.id).json()
        assert body["resumed"] is True
        assert body["attempt"]["id"] == active.id

    def test_foreign_question(self, client, db, assessment, trainee_headers):
        other = make_assessment(db, title="Other")
        attempt_id = _start(client, trainee_headers, assessment.id).json()["attempt"]["id"]

        response = client.post(
            f"{TRAINEE}/assessment-attempts/{attempt_id}/answers",
            json={"question_id": other.questions[0].id, "answer_data": 1},
            headers=trainee_headers,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "QuestionNotInAssessment"

    def test_save_on_finished_attempt(self, client, assessment, trainee_headers):
        q1 = assessment.questions[0]
        attempt_id = _start(client, trainee_headers, assessment.id).json()["attempt"]["id"]
        client.post(f"{TRAINEE}/assessment-attempts/{attempt_id}/submit", json={"answers": []}, headers=trainee_headers)

        response = client.post(
            f"{TRAINEE}/assessment-attempts/{attempt_id}/answers",
            json={"question_id": q1.id, "answer_data": 1},
            headers=trainee_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "AttemptNotActive"

    def test_other_trainees_attempt_is_not_found(self, client, assessment, trainee_headers, other_trainee_headers):
        attempt_id = _start(client, trainee_headers, assessment.id).json()["attempt"]["id"]

        response = client.get(f"{TRAINEE}/assessment-attempts/{attempt_id}", headers=other_trainee_headers)
        assert response.status_code == 404

    def test_trainee_cannot_use_admin_routes(self, client, trainee_headers):
        assert client.get(f"{ADMIN}/security/logs", headers=trainee_headers).status_code == 403

    def test_unknown_event_type_rejected(self, client, assessment, trainee_headers):
        response = client.post(
            f"{TRAINEE}/assessments/{assessment.id}/security-log",
            json={"event_type": "teleport"},
            headers=trainee_headers,
        )
        assert response.status_code == 422


class TestSecurityLogging:

    def test_bulk_ingest_and_admin_summary(self, client, recorder, assessment, trainee_headers, admin_headers):
        response = client.post(
            f"{TRAINEE}/assessments/{assessment.id}/security-log/bulk",
            json={"events": [
                {"event_type": "shortcut_blocked", "detail": "Ctrl+C"},
                {"event_type": "shortcut_blocked", "detail": "Ctrl+C"},
                {"event_type": "suspicious_activity", "severity": "critical", "detail": "Screen recorder"},
            ]},
            headers=trainee_headers,
        )
        assert response.status_code == 202
        assert response.json() == {"accepted": 3, "dropped": 0}

        recorder.drain()
        summary = client.get(
            f"{ADMIN}/security/logs/summary",
            params={"assessment_id": assessment.id},
            headers=admin_headers,
        ).json()
        assert summary["total_events"] == 3
        assert summary["suspicious_events"] == 3
        assert summary["unique_trainees"] == 1
        assert summary["top_activities"]["shortcut_blocked: Ctrl+C"] == 2

        logs = client.get(
            f"{ADMIN}/trainees/101/security/logs",
            params={"severity": "critical"},
            headers=admin_headers,
        ).json()
        assert logs["pagination"]["total"] == 1
        assert logs["data"][0]["activity"].startswith("suspicious_activity: Screen recorder at ")

    def test_ingest_records_client_details(self, client, recorder, assessment, trainee_headers, admin_headers):
        client.post(
            f"{TRAINEE}/assessments/{assessment.id}/security-log",
            json={"event_type": "copy_attempt"},
            headers={**trainee_headers, "User-Agent": "exam-browser/1.0", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
        )
        recorder.drain()

        log = client.get(f"{ADMIN}/security/logs", headers=admin_headers).json()["data"][0]
        assert log["ip_address"] == "203.0.113.9"
        assert log["user_agent"] == "exam-browser/1.0"
        assert log["severity"] == "medium"

    def test_events_are_not_attached_to_foreign_attempts(self, client, db, recorder, assessment,
                                                         trainee_headers, admin_headers):
        own = make_attempt(db, assessment)
        someone_elses = make_attempt(db, assessment, trainee_id=202)
        other_assessment = make_assessment(db, title="Other")
        elsewhere = make_attempt(db, other_assessment, status="submitted")

        response = client.post(
            f"{TRAINEE}/assessments/{assessment.id}/security-log/bulk",
            json={"events": [
                {"event_type": "tab_switch", "attempt_id": own.id},
                {"event_type": "copy_attempt", "attempt_id": someone_elses.id},
                {"event_type": "paste_attempt", "attempt_id": elsewhere.id},
            ]},
            headers=trainee_headers,
        )
        assert response.json() == {"accepted": 3, "dropped": 0}

        recorder.drain()
        logs = client.get(f"{ADMIN}/trainees/101/security/logs", headers=admin_headers).json()["data"]
        attached = {log["event_type"]: log["attempt_id"] for log in logs}
        assert attached == {"tab_switch": own.id, "copy_attempt": None, "paste_attempt": None}


class TestReportingRoutes:

    def test_trainee_history_and_stats(self, client, assessment, trainee_headers):
        attempt_id = _start(client, trainee_headers, assessment.id).json()["attempt"]["id"]
        client.post(f"{TRAINEE}/assessment-attempts/{attempt_id}/submit", json={"answers": []}, headers=trainee_headers)

        history = client.get(f"{TRAINEE}/assessments/history", headers=trainee_headers)
        assert history.status_code == 200
        assert [a["id"] for a in history.json()] == [attempt_id]

        per_assessment = client.get(f"{TRAINEE}/assessments/{assessment.id}/history", headers=trainee_headers)
        assert [a["id"] for a in per_assessment.json()] == [attempt_id]

        stats = client.get(f"{TRAINEE}/assessments/stats", headers=trainee_headers).json()
        assert stats["total_assessments"] == 1
        assert stats["completed_assessments"] == 1
        assert stats["passed_assessments"] == 0

    def test_assessment_detail(self, client, assessment, trainee_headers):
        body = client.get(f"{TRAINEE}/assessments/{assessment.id}", headers=trainee_headers).json()

        assert body["assessment"]["questions_count"] == 2
        assert body["assessment"]["total_points"] == 2.0
        assert body["summary"]["can_attempt"] is True

    def test_admin_results_and_stats(self, client, assessment, trainee_headers, admin_headers):
        attempt_id = _start(client, trainee_headers, assessment.id).json()["attempt"]["id"]
        q1 = assessment.questions[0]
        client.post(
            f"{TRAINEE}/assessment-attempts/{attempt_id}/submit",
            json={"answers": [{"question_id": q1.id, "answer_data": correct_option_id(q1)}]},
            headers=trainee_headers,
        )

        results = client.get(f"{ADMIN}/assessments/{assessment.id}/results", headers=admin_headers).json()
        assert results["trainees"][0]["trainee_id"] == 101
        assert results["trainees"][0]["best_percentage"] == 50.0

        stats = client.get(f"{ADMIN}/assessments/{assessment.id}/stats", headers=admin_headers).json()
        assert stats["total_attempts"] == 1
        assert stats["pass_rate"] == 100.0


class TestHealth:

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/").status_code == 200
