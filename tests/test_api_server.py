import httpx
import pytest
from fastapi.testclient import TestClient

from exam_app.client.exam_api_client import ExamApiClient
from exam_app.core.errors import ExamApiError
from exam_app.core.exam_manager import ExamManager
from exam_app.core.models import SessionStatus
from exam_app.server.api_server import create_api_app


@pytest.fixture
def manager(two_question_exam) -> ExamManager:
    manager = ExamManager()
    manager.load_exams([two_question_exam])
    return manager


@pytest.fixture
def http(manager) -> TestClient:
    return TestClient(create_api_app(manager))


@pytest.fixture
def api(http) -> ExamApiClient:
    return ExamApiClient(client=http)


def test_available_exams_include_rendered_questions(http):
    response = http.get("/exams/available")
    assert response.status_code == 200
    (exam,) = response.json()
    assert exam["id"] == "exam-1"
    assert exam["questions"][0]["correct_answer"] == "B"
    assert exam["questions"][0]["text_html"].startswith("<p>")
    assert len(exam["questions"][0]["options_html"]) == 4


def test_full_session_flow_over_http(http):
    started = http.post("/exams/exam-1/sessions/start", json={"student_id": "alice"}).json()
    assert started["status"] == "in-progress"
    assert started["start_time"]
    assert started["resumed"] is False

    progress = http.post(
        "/exams/exam-1/sessions/progress",
        json={"student_id": "alice", "progress": 50, "answers": {"q1": "B"}},
    )
    assert progress.json() == {"ok": True, "progress": 50}

    resumed = http.post("/exams/exam-1/sessions/start", json={"student_id": "alice"}).json()
    assert resumed["resumed"] is True
    assert resumed["start_time"] == started["start_time"]
    assert resumed["answers"] == {"q1": "B"}

    submitted = http.post(
        "/exams/exam-1/sessions/submit",
        json={"student_id": "alice", "answers": {"q1": "B", "q2": "False"}, "score": 5},
    ).json()
    assert submitted["accepted"] is True
    assert submitted["session"]["score"] == 5

    retried = http.post(
        "/exams/exam-1/sessions/submit",
        json={"student_id": "alice", "answers": {}, "score": 0},
    ).json()
    assert retried["accepted"] is False
    assert retried["session"]["score"] == 5

    late_sync = http.post(
        "/exams/exam-1/sessions/progress",
        json={"student_id": "alice", "progress": 10, "answers": {}},
    )
    assert late_sync.status_code == 409


def test_reset_is_audited(http):
    http.post("/exams/exam-1/sessions/start", json={"student_id": "alice"})
    http.post(
        "/exams/exam-1/sessions/submit",
        json={"student_id": "alice", "answers": {"q1": "B"}, "score": 5},
    )

    response = http.post(
        "/exams/exam-1/sessions/reset",
        json={"student_id": "alice", "actor": "principal", "reason": "retake approved"},
    )
    assert response.status_code == 200
    assert response.json()["audit"]["previous_score"] == 5

    (session,) = http.get("/exams/exam-1/sessions").json()
    assert session["status"] == "not-started"
    assert session["score"] is None
    assert [entry["actor"] for entry in http.get("/admin/resets").json()] == ["principal"]


def test_reset_without_actor_is_rejected(http):
    http.post("/exams/exam-1/sessions/start", json={"student_id": "alice"})
    response = http.post("/exams/exam-1/sessions/reset", json={"student_id": "alice"})
    assert response.status_code == 422


def test_error_statuses(http):
    assert http.get("/exams/nope").status_code == 404
    assert http.post("/exams/nope/sessions/start", json={"student_id": "a"}).status_code == 404
    assert (
        http.post(
            "/exams/exam-1/sessions/submit",
            json={"student_id": "ghost", "answers": {}, "score": 0},
        ).status_code
        == 404
    )
    assert (
        http.post(
            "/exams/exam-1/sessions/progress",
            json={"student_id": "alice", "progress": 150},
        ).status_code
        == 422
    )


def test_builder_and_status_endpoints(http):
    created = http.post(
        "/exams/builder",
        json={
            "title": "Pop quiz",
            "duration_minutes": 5,
            "questions": [
                {"type": "short-answer", "text": "2 + 2?", "correct_answer": "4", "points": 1},
            ],
        },
    )
    assert created.status_code == 201
    exam_id = created.json()["id"]
    assert created.json()["questions"][0]["id"]

    assert http.post("/exams/" + exam_id + "/sessions/start", json={"student_id": "a"}).status_code == 409
    assert http.patch(f"/exams/{exam_id}/status", json={"status": "active"}).json()["status"] == "active"
    assert http.post(f"/exams/{exam_id}/sessions/start", json={"student_id": "a"}).status_code == 200

    invalid = http.post(
        "/exams/builder",
        json={
            "title": "Broken",
            "questions": [{"type": "multiple-choice", "text": "?", "options": ["x", "y"], "correct_answer": "z"}],
        },
    )
    assert invalid.status_code == 422


def test_proctor_frames_are_recorded(http, manager):
    response = http.post(
        "/proctoring/frame",
        json={"exam_id": "exam-1", "student_id": "alice", "frame_data": "data:image/jpeg;base64,AAAA"},
    )
    assert response.status_code == 201
    assert manager.get_proctor_frame_count("exam-1", "alice") == 1


def test_api_client_round_trip(api):
    (exam,) = api.fetch_active_exams()
    assert exam.questions[1].correct_answer == "True"
    assert api.fetch_exam_definition("exam-1").title == "Midterm"

    session, resumed = api.start_session("exam-1", "bob")
    assert not resumed
    assert session.status is SessionStatus.IN_PROGRESS
    assert session.start_time is not None

    api.patch_session_progress("exam-1", "bob", 50, {"q1": "B"})
    resumed_session, resumed = api.start_session("exam-1", "bob")
    assert resumed
    assert resumed_session.answers == {"q1": "B"}
    assert api.submit_session("exam-1", "bob", {"q1": "B"}, 5) is True
    assert api.submit_session("exam-1", "bob", {"q1": "B"}, 5) is False
    api.upload_proctor_frame("exam-1", "bob", "data:image/jpeg;base64,AAAA")

    api.reset_session("exam-1", "bob", actor="admin")
    (reset,) = api.list_sessions("exam-1")
    assert reset.status is SessionStatus.NOT_STARTED


def test_api_client_raises_on_error_status(api):
    with pytest.raises(ExamApiError) as excinfo:
        api.fetch_exam_definition("missing")
    assert excinfo.value.status_code == 404
    assert "missing" in excinfo.value.detail


def _client_with_response(response: httpx.Response) -> ExamApiClient:
    transport = httpx.MockTransport(lambda request: response)
    return ExamApiClient(client=httpx.Client(transport=transport, base_url="http://exams.test"))


def test_api_client_rejects_non_json_success_body():
    api = _client_with_response(httpx.Response(200, text="<html>proxy login</html>"))
    with pytest.raises(ExamApiError) as excinfo:
        api.submit_session("exam-1", "alice", {"q1": "B"}, 5)
    assert excinfo.value.status_code == 200
    assert "non-JSON" in excinfo.value.detail


def test_api_client_rejects_wrong_body_shape():
    api = _client_with_response(httpx.Response(200, json=["not", "a", "session"]))
    with pytest.raises(ExamApiError):
        api.start_session("exam-1", "alice")


def test_api_client_error_body_that_is_not_an_object():
    api = _client_with_response(httpx.Response(502, json=["bad gateway"]))
    with pytest.raises(ExamApiError) as excinfo:
        api.fetch_exam_definition("exam-1")
    assert excinfo.value.status_code == 502
    assert "bad gateway" in excinfo.value.detail
