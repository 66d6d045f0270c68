"""
Tests for test session endpoints.
"""
import pytest

from conftest import correct_answer_for
from hiring_assessment.models import QuestionSlot, TestSession


def slots_for(db_session, session_code):
    db_session.expire_all()
    test_session = (
        db_session.query(TestSession)
        .filter(TestSession.session_code == session_code)
        .one()
    )
    return (
        db_session.query(QuestionSlot)
        .filter(QuestionSlot.test_session_id == test_session.id)
        .order_by(QuestionSlot.question_number)
        .all()
    )


@pytest.fixture
def created(client, candidate, question_bank):
    response = client.post("/v1/sessions", json={"candidate_id": candidate.id})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def started(client, created):
    response = client.post(f"/v1/sessions/{created['session_id']}/begin")
    assert response.status_code == 200
    return created


class TestCreateSession:
    """Tests for POST /v1/sessions."""

    def test_create_session_success(self, created):
        assert created["session_id"].startswith("TS")
        assert created["status"] == "created"
        assert created["total_questions"] == 10
        assert created["duration_minutes"] == 30
        assert created["passing_percentage"] == 65
        assert created["negative_marking"] is True
        assert created["attempt_number"] == 1
        assert created["is_retake"] is False
        assert created["valid_until"] is not None
        assert [q["question_number"] for q in created["questions"]] == list(
            range(1, 11)
        )

    def test_questions_hide_correct_answers(self, created):
        for question in created["questions"]:
            assert "correct_answer" not in question
            assert question["options"]
            for option in question["options"]:
                assert set(option) == {"text"}

    def test_unknown_candidate(self, client, question_bank):
        response = client.post("/v1/sessions", json={"candidate_id": 4242})

        assert response.status_code == 404
        assert response.json()["error_code"] == "not-found"

    def test_second_session_rejected_with_active_id(self, client, created, candidate):
        response = client.post("/v1/sessions", json={"candidate_id": candidate.id})

        assert response.status_code == 403
        data = response.json()
        assert data["error_code"] == "ineligible"
        # Cooldown is checked before the active session
        assert data["reason_code"] == "cooldown"
        assert data["active_session_id"] == created["session_id"]

    def test_max_attempts(self, client, make_candidate, question_bank):
        exhausted = make_candidate(total_attempts=5)

        response = client.post("/v1/sessions", json={"candidate_id": exhausted.id})

        assert response.status_code == 403
        assert response.json()["detail"] == "Maximum attempts reached."

    def test_insufficient_pool(self, client, candidate):
        response = client.post("/v1/sessions", json={"candidate_id": candidate.id})

        assert response.status_code == 503
        data = response.json()
        assert data["error_code"] == "insufficient-question-pool"
        assert data["requested"] == 10
        assert data["available"] == 0

    def test_invalid_candidate_id(self, client):
        response = client.post("/v1/sessions", json={"candidate_id": 0})
        assert response.status_code == 422


class TestBeginSession:
    """Tests for POST /v1/sessions/{id}/begin."""

    def test_begin(self, client, created):
        response = client.post(f"/v1/sessions/{created['session_id']}/begin")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "in_progress"
        assert data["remaining_seconds"] == 1800
        assert data["start_time"] is not None

    def test_begin_twice(self, client, started):
        response = client.post(f"/v1/sessions/{started['session_id']}/begin")

        assert response.status_code == 409
        assert response.json()["error_code"] == "invalid-session-state"
        assert response.json()["status"] == "in_progress"

    def test_begin_after_window(self, client, created, clock):
        clock.advance(hours=25)

        response = client.post(f"/v1/sessions/{created['session_id']}/begin")

        assert response.status_code == 409
        assert response.json()["error_code"] == "session-expired"
        status_response = client.get(f"/v1/sessions/{created['session_id']}/status")
        assert status_response.json()["status"] == "expired"

    def test_unknown_session(self, client, db_session):
        response = client.post("/v1/sessions/TSNOPE00000/begin")
        assert response.status_code == 404


class TestAnswerAndFlag:
    """Tests for PUT /v1/sessions/{id}/answer and /flag."""

    def test_answer(self, client, started, clock):
        clock.advance(seconds=90)

        response = client.put(
            f"/v1/sessions/{started['session_id']}/answer",
            json={"question_number": 1, "answer": "anything", "time_spent_seconds": 90},
        )

        assert response.status_code == 200
        assert response.json() == {"question_number": 1, "remaining_seconds": 1710}

    def test_blank_answer_rejected(self, client, started):
        response = client.put(
            f"/v1/sessions/{started['session_id']}/answer",
            json={"question_number": 1, "answer": "   "},
        )
        assert response.status_code == 422

    def test_negative_time_rejected(self, client, started):
        response = client.put(
            f"/v1/sessions/{started['session_id']}/answer",
            json={"question_number": 1, "answer": "x", "time_spent_seconds": -1},
        )
        assert response.status_code == 422

    def test_question_out_of_range(self, client, started):
        response = client.put(
            f"/v1/sessions/{started['session_id']}/answer",
            json={"question_number": 11, "answer": "x"},
        )
        assert response.status_code == 404

    def test_answer_before_begin(self, client, created):
        response = client.put(
            f"/v1/sessions/{created['session_id']}/answer",
            json={"question_number": 1, "answer": "x"},
        )
        assert response.status_code == 409
        assert response.json()["status"] == "created"

    def test_answer_after_timeout(self, client, started, clock):
        clock.advance(minutes=31)

        response = client.put(
            f"/v1/sessions/{started['session_id']}/answer",
            json={"question_number": 1, "answer": "x"},
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "session-expired"
        result = client.get(f"/v1/sessions/{started['session_id']}/result")
        assert result.status_code == 200
        assert result.json()["termination_reason"] == "time_expired"

    def test_flag(self, client, started):
        response = client.put(
            f"/v1/sessions/{started['session_id']}/flag",
            json={"question_number": 2, "flagged": True},
        )

        assert response.status_code == 200
        assert response.json() == {"question_number": 2, "flagged": True}
        status_response = client.get(f"/v1/sessions/{started['session_id']}/status")
        assert status_response.json()["flagged_count"] == 1


class TestViolations:
    """Tests for POST /v1/sessions/{id}/violations."""

    def test_minor_violation(self, client, started):
        response = client.post(
            f"/v1/sessions/{started['session_id']}/violations",
            json={"type": "right_click", "details": {"x": 1}},
        )

        assert response.status_code == 200
        assert response.json() == {
            "severity": "minor",
            "total_violations": 1,
            "should_terminate": False,
            "session_completed": False,
        }

    def test_critical_violations_terminate(self, client, started):
        url = f"/v1/sessions/{started['session_id']}/violations"
        client.post(url, json={"type": "copy_paste"})

        response = client.post(url, json={"type": "multiple_faces"})

        assert response.json()["session_completed"] is True
        result = client.get(f"/v1/sessions/{started['session_id']}/result").json()
        assert result["termination_reason"] == "violation_limit"
        assert result["violation_counts"] == {"critical": 2, "major": 0, "minor": 0}


class TestSubmitAndResult:
    """Tests for submit, status and result."""

    def test_full_flow(self, client, started, db_session, candidate, clock):
        session_id = started["session_id"]
        slots = slots_for(db_session, session_id)
        for slot in slots[:8]:
            clock.advance(seconds=30)
            response = client.put(
                f"/v1/sessions/{session_id}/answer",
                json={
                    "question_number": slot.question_number,
                    "answer": correct_answer_for(slot),
                    "time_spent_seconds": 30,
                },
            )
            assert response.status_code == 200

        response = client.post(f"/v1/sessions/{session_id}/submit")

        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == session_id
        assert data["score"]["correct_answers"] == 8
        assert data["score"]["unanswered_questions"] == 2
        assert data["score"]["negative_points"] == 0
        assert data["is_passed"] is True
        assert data["rank"] == 1

        result = client.get(f"/v1/sessions/{session_id}/result")
        assert result.status_code == 200
        body = result.json()
        assert body["status"] == "evaluated"
        assert body["termination_reason"] == "submitted"
        assert body["actual_duration_seconds"] == 240
        assert body["analytics"]["avg_time_per_question"] == 30
        assert body["score"]["category_breakdown"]

        eligibility = client.get(f"/v1/candidates/{candidate.id}/eligibility").json()
        assert eligibility["can_attempt"] is False
        assert eligibility["reason_code"] == "already_qualified"

    def test_double_submit(self, client, started):
        url = f"/v1/sessions/{started['session_id']}/submit"
        first = client.post(url)

        second = client.post(url)

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["detail"] == "Test session has already been submitted."

    def test_result_before_submit(self, client, started):
        response = client.get(f"/v1/sessions/{started['session_id']}/result")

        assert response.status_code == 409
        assert response.json()["status"] == "in_progress"

    def test_status_settles_timeout(self, client, started, clock):
        clock.advance(minutes=40)

        response = client.get(f"/v1/sessions/{started['session_id']}/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "evaluated"
        assert data["termination_reason"] == "time_expired"
        assert data["remaining_seconds"] == 0


class TestCancelSession:
    """Tests for POST /v1/sessions/{id}/cancel."""

    def test_cancel_created_session(self, client, created, db_session, candidate):
        response = client.post(f"/v1/sessions/{created['session_id']}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        db_session.refresh(candidate)
        assert candidate.total_attempts == 1

    def test_cancel_running_session(self, client, started):
        response = client.post(f"/v1/sessions/{started['session_id']}/cancel")
        assert response.status_code == 409


class TestEligibilityEndpoint:
    """Tests for GET /v1/candidates/{id}/eligibility."""

    def test_new_candidate(self, client, candidate):
        response = client.get(f"/v1/candidates/{candidate.id}/eligibility")

        assert response.status_code == 200
        assert response.json() == {
            "can_attempt": True,
            "reason_code": None,
            "reason": None,
            "active_session_id": None,
        }

    def test_check_does_not_consume_attempt(self, client, candidate, db_session):
        client.get(f"/v1/candidates/{candidate.id}/eligibility")

        db_session.refresh(candidate)
        assert candidate.total_attempts == 0

    def test_unknown_candidate(self, client, db_session):
        response = client.get("/v1/candidates/999/eligibility")
        assert response.status_code == 404

    def test_reports_active_session(
        self, client, created, candidate, monkeypatch, small_test_settings
    ):
        monkeypatch.setattr(small_test_settings, "ATTEMPT_COOLDOWN_HOURS", 0)

        data = client.get(f"/v1/candidates/{candidate.id}/eligibility").json()

        assert data["can_attempt"] is False
        assert data["reason_code"] == "active_session_exists"
        assert data["active_session_id"] == created["session_id"]

    def test_timed_out_session_not_reported_as_active(
        self, client, started, candidate, clock, monkeypatch, small_test_settings, db_session
    ):
        monkeypatch.setattr(small_test_settings, "ATTEMPT_COOLDOWN_HOURS", 0)
        clock.advance(minutes=40)

        data = client.get(f"/v1/candidates/{candidate.id}/eligibility").json()

        assert data["can_attempt"] is True
        assert data["active_session_id"] is None
        # The check itself leaves the session for the next write to settle
        stored = (
            db_session.query(TestSession)
            .filter(TestSession.session_code == started["session_id"])
            .one()
        )
        assert stored.status.value == "in_progress"
