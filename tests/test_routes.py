# FILE: tests/test_routes.py

import pytest
from fastapi.testclient import TestClient

from cbt_engine import __version__
from cbt_engine.app import app
from cbt_engine.models.exams import ExamDescriptor, ExamType, ObjectiveQuestion
from cbt_engine.services.attempt_engine import set_engine
from cbt_engine.services.ordering import ORDERING_ALGORITHM_VERSION


@pytest.fixture
def client(engine, catalog, essay_exam, essay_questions):
    quiz = ExamDescriptor(id="quiz", title="Quiz", type=ExamType.OBJECTIVE, duration_minutes=1)
    catalog.put_exam(quiz, [
        ObjectiveQuestion(id="q1", prompt_text="2+2?", options=["3", "4", "5"], correct_option_index=1),
        ObjectiveQuestion(id="q2", prompt_text="3+3?", options=["6", "7", "8"], correct_option_index=0),
    ])
    catalog.put_exam(essay_exam, essay_questions)

    set_engine(engine)
    with TestClient(app) as client:
        yield client
    set_engine(None)


def _start(client, exam_id="quiz", student_id="alice"):
    response = client.post("/attempts/start", json={"exam_id": exam_id, "student_id": student_id})
    assert response.status_code == 200
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == __version__
    assert data["ordering_algorithm"] == ORDERING_ALGORITHM_VERSION


def test_root(client):
    assert client.get("/").json()["status"] == "active"


def test_start_returns_permuted_questions_without_answer_key(client):
    data = _start(client)

    assert data["exam_type"] == "objective"
    assert data["duration_seconds"] == 60
    assert data["remaining_seconds"] == 60
    assert sorted(q["id"] for q in data["questions"]) == ["q1", "q2"]
    for question in data["questions"]:
        assert "correct_option_index" not in question
        assert len(question["options"]) == 3


def test_start_unknown_exam_is_404(client):
    response = client.post("/attempts/start", json={"exam_id": "missing", "student_id": "alice"})

    assert response.status_code == 404


def test_full_attempt_flow(client, result_store):
    _start(client)

    response = client.post("/attempts/answer", json={
        "exam_id": "quiz", "student_id": "alice", "question_id": "q1", "value": "4"
    })
    assert response.json() == {"status": "accepted", "question_id": "q1"}

    state = client.get("/attempts/status", params={"exam_id": "quiz", "student_id": "alice"}).json()
    assert state["countdown_state"] == "running"
    assert state["answered"] == 1

    response = client.post("/attempts/finalize", json={"exam_id": "quiz", "student_id": "alice"})
    assert response.status_code == 200
    result = response.json()
    assert result["aggregate_percent"] == 50
    assert result["status"] == "completed"

    # second finalize returns the same result, no second record
    again = client.post("/attempts/finalize", json={"exam_id": "quiz", "student_id": "alice"}).json()
    assert again == result
    assert len(result_store.list_results(exam_id="quiz")) == 1

    late = client.post("/attempts/answer", json={
        "exam_id": "quiz", "student_id": "alice", "question_id": "q2", "value": "6"
    })
    assert late.json()["status"] == "closed"

    state = client.get("/attempts/status", params={"exam_id": "quiz", "student_id": "alice"}).json()
    assert state["countdown_state"] == "finished"
    assert state["result"]["aggregate_percent"] == 50


def test_finalize_as_expired(client, clock, result_store):
    _start(client)
    clock.advance(60)

    response = client.post("/attempts/finalize", json={
        "exam_id": "quiz", "student_id": "alice", "reason": "expired"
    })

    assert response.status_code == 200
    record = result_store.list_results(exam_id="quiz")[0]
    assert record.finalize_reason.value == "expired"
    assert record.time_spent_seconds == 60


def test_answer_errors(client):
    response = client.post("/attempts/answer", json={
        "exam_id": "quiz", "student_id": "nobody", "question_id": "q1", "value": "4"
    })
    assert response.status_code == 404

    _start(client)
    response = client.post("/attempts/answer", json={
        "exam_id": "quiz", "student_id": "alice", "question_id": "q99", "value": "4"
    })
    assert response.status_code == 409


def test_finalize_and_status_unknown_attempt(client):
    response = client.post("/attempts/finalize", json={"exam_id": "quiz", "student_id": "nobody"})
    assert response.status_code == 404

    response = client.get("/attempts/status", params={"exam_id": "quiz", "student_id": "nobody"})
    assert response.status_code == 404


def test_abandon_keeps_ordering(client, ordering_store):
    first = _start(client)

    response = client.post("/attempts/abandon", json={"exam_id": "quiz", "student_id": "alice"})
    assert response.json()["status"] == "abandoned"

    second = _start(client)
    assert [q["id"] for q in second["questions"]] == [q["id"] for q in first["questions"]]
    assert [q["options"] for q in second["questions"]] == [q["options"] for q in first["questions"]]


def test_results_listing_and_export(client):
    for student in ("alice", "bob"):
        _start(client, student_id=student)
        client.post("/attempts/answer", json={
            "exam_id": "quiz", "student_id": student, "question_id": "q1", "value": "4"
        })
        client.post("/attempts/finalize", json={"exam_id": "quiz", "student_id": student})

    data = client.get("/results", params={"exam_id": "quiz"}).json()
    assert data["count"] == 2
    assert {r["student_id"] for r in data["data"]} == {"alice", "bob"}

    data = client.get("/results", params={"exam_id": "quiz", "student_id": "bob"}).json()
    assert data["count"] == 1

    response = client.get("/results/export", params={"exam_id": "quiz"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("result_id,exam_id,student_id,aggregate_percent")
    assert len(lines) == 3

    data = client.get("/results/export", params={"exam_id": "quiz", "format": "json"}).json()
    assert data["count"] == 2
    assert all(row["aggregate_percent"] == 50 for row in data["data"])


def test_pending_review_endpoint(client, engine):
    engine.review_threshold = 0.9
    _start(client, exam_id="bio-essay")
    client.post("/attempts/finalize", json={"exam_id": "bio-essay", "student_id": "alice"})

    data = client.get("/results/pending-review", params={"exam_id": "bio-essay"}).json()

    assert data["count"] == 1
    assert data["data"][0]["status"] == "pending_review"
    assert data["data"][0]["aggregate_confidence"] == 0.7


def test_results_rejects_bad_parameters(client):
    assert client.get("/results", params={"exam_id": "../etc"}).status_code == 400
    assert client.get("/results/export", params={"format": "xml"}).status_code == 400


def test_review_finalize_endpoint(client, engine, result_store):
    engine.review_threshold = 0.9
    _start(client, exam_id="bio-essay")
    client.post("/attempts/finalize", json={"exam_id": "bio-essay", "student_id": "alice"})
    result_id = result_store.pending_review("bio-essay")[0].result_id

    response = client.post(f"/results/{result_id}/finalize", json={
        "exam_id": "bio-essay", "percent": 80, "note": "graded by hand"
    })

    assert response.status_code == 200
    record = response.json()["data"]
    assert record["status"] == "completed"
    assert record["aggregate_percent"] == 80
    assert record["finalized"] is True
    assert record["finalize_note"] == "graded by hand"
    assert client.get("/results/pending-review", params={"exam_id": "bio-essay"}).json()["count"] == 0


def test_review_finalize_errors(client, engine, result_store):
    engine.review_threshold = 0.9
    _start(client, exam_id="bio-essay")
    client.post("/attempts/finalize", json={"exam_id": "bio-essay", "student_id": "alice"})
    result_id = result_store.pending_review("bio-essay")[0].result_id

    response = client.post(f"/results/{result_id}/finalize", json={"exam_id": "bio-essay", "percent": 150})
    assert response.status_code == 400

    response = client.post("/results/unknown/finalize", json={"exam_id": "bio-essay", "percent": 50})
    assert response.status_code == 404

    _start(client)
    client.post("/attempts/finalize", json={"exam_id": "quiz", "student_id": "alice"})
    objective_id = result_store.list_results(exam_id="quiz")[0].result_id
    response = client.post(f"/results/{objective_id}/finalize", json={"percent": 50})
    assert response.status_code == 409
