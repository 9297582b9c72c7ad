import json

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import survey_insights.main as m
from survey_insights import config

SURVEY = {"id": 1, "name": "Encuesta de gerentes", "description": None, "target_role": "manager", "is_active": True}
QUESTIONS = [
    {"id": 1, "question_type": "likert", "is_required": True},
    {"id": 2, "question_type": "percentage", "is_required": False},
]


def _client(monkeypatch):
    monkeypatch.setattr(m, "wait_for_db", lambda *args, **kwargs: None)
    monkeypatch.setattr(m, "run_migrations", lambda *args, **kwargs: [])
    monkeypatch.setattr(m, "repo_get_survey", lambda survey_id: SURVEY if survey_id == 1 else None)
    monkeypatch.setattr(m, "repo_existing_question_ids", lambda survey_id, ids: {q for q in ids if q in (1, 2)})
    monkeypatch.setattr(m, "repo_list_survey_questions", lambda survey_id: QUESTIONS)
    return TestClient(m.app)


def _db_down(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_list_active_surveys(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(m, "repo_list_active_surveys", lambda: [SURVEY])
    res = client.get("/api/surveys")
    assert res.status_code == 200
    assert res.json() == {"surveys": [SURVEY]}


def test_survey_questions_decode_json_columns(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(
        m,
        "repo_list_survey_questions",
        lambda survey_id: [
            {"id": 1, "question_type": "multiple_choice", "options": '["1-2", "3-5", "9+"]', "validation_rules": '{"required": true}'},
            {"id": 2, "question_type": "checkbox", "options": "[broken", "validation_rules": "{nope"},
            {"id": 3, "question_type": "text", "options": None, "validation_rules": None},
        ],
    )
    res = client.get("/api/surveys/1/questions")
    assert res.status_code == 200
    body = res.json()
    assert body["survey"]["name"] == "Encuesta de gerentes"
    questions = body["questions"]
    assert questions[0]["options"] == ["1-2", "3-5", "9+"]
    assert questions[0]["validation_rules"] == {"required": True}
    assert questions[1]["options"] == []
    assert questions[1]["validation_rules"] == {}
    assert questions[2]["options"] is None
    assert questions[2]["validation_rules"] is None


def test_survey_questions_bad_id_and_missing_survey(monkeypatch):
    client = _client(monkeypatch)
    res = client.get("/api/surveys/abc/questions")
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid survey ID"}

    res = client.get("/api/surveys/99/questions")
    assert res.status_code == 404
    assert res.json() == {"error": "Survey not found"}


def test_submit_stores_answers(monkeypatch):
    client = _client(monkeypatch)
    calls = {}

    def fake_submit(survey_id, answers, **kwargs):
        calls["survey_id"] = survey_id
        calls["answers"] = answers
        calls["kwargs"] = kwargs
        return 42

    monkeypatch.setattr(m, "repo_submit_response", fake_submit)
    res = client.post(
        "/api/surveys/submit",
        json={
            "surveyId": 1,
            "sessionId": "abc-123",
            "responseTime": 540,
            "completedAt": "2026-06-15T12:00:00Z",
            "answers": [
                {"questionId": 1, "value": "7", "numericValue": 7, "confidenceScore": 4},
                {"questionId": 2, "value": {"Data Entry": 60, "Venta": 40}},
            ],
        },
    )
    assert res.status_code == 200
    assert res.json() == {"success": True, "responseId": 42, "message": "Survey submitted successfully"}

    assert calls["survey_id"] == 1
    assert calls["answers"][0] == {"question_id": 1, "answer_value": "7", "answer_numeric": 7.0, "confidence_score": 4}
    assert json.loads(calls["answers"][1]["answer_value"]) == {"Data Entry": 60, "Venta": 40}
    assert calls["answers"][1]["answer_numeric"] is None
    assert calls["kwargs"]["session_id"] == "abc-123"
    assert calls["kwargs"]["response_time"] == 540


@pytest.mark.parametrize(
    "payload",
    [
        None,
        {"answers": []},
        {"surveyId": 0, "answers": [{"questionId": 1}]},
        {"surveyId": "uno", "answers": [{"questionId": 1}]},
        {"surveyId": 1, "answers": "7"},
    ],
)
def test_submit_rejects_malformed_payloads(monkeypatch, payload):
    client = _client(monkeypatch)
    res = client.post("/api/surveys/submit", json=payload)
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid request data"}


def test_submit_rejects_empty_answers(monkeypatch):
    client = _client(monkeypatch)
    res = client.post("/api/surveys/submit", json={"surveyId": 1, "answers": []})
    assert res.status_code == 400
    assert res.json() == {"error": "No answers provided"}


def test_submit_rejects_unknown_question_ids(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(m, "repo_submit_response", lambda *args, **kwargs: pytest.fail("must not store"))
    res = client.post(
        "/api/surveys/submit",
        json={"surveyId": 1, "answers": [{"questionId": 1, "value": "a"}, {"questionId": 3}, {"questionId": 5}]},
    )
    assert res.status_code == 400
    assert res.json() == {
        "error": "Invalid question IDs",
        "missingIds": [3, 5],
        "details": "Question IDs 3, 5 do not exist for survey 1",
    }


def test_submit_rejects_missing_required_answers(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(
        m,
        "repo_list_survey_questions",
        lambda survey_id: [
            {"id": 1, "question_type": "likert", "is_required": True},
            {"id": 2, "question_type": "percentage", "is_required": True},
        ],
    )
    monkeypatch.setattr(m, "repo_submit_response", lambda *args, **kwargs: pytest.fail("must not store"))
    res = client.post("/api/surveys/submit", json={"surveyId": 1, "answers": [{"questionId": 1, "value": "8", "numericValue": 8}]})
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "Missing required answers"
    assert body["missingIds"] == [2]


def test_blank_answer_does_not_satisfy_required_question(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(m, "repo_submit_response", lambda *args, **kwargs: pytest.fail("must not store"))
    res = client.post(
        "/api/surveys/submit",
        json={"surveyId": 1, "answers": [{"questionId": 1, "value": "  "}, {"questionId": 2, "value": {"Admin": 100}}]},
    )
    assert res.status_code == 400
    assert res.json()["missingIds"] == [1]


def test_optional_questions_may_be_skipped(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(m, "repo_submit_response", lambda *args, **kwargs: 7)
    res = client.post("/api/surveys/submit", json={"surveyId": 1, "answers": [{"questionId": 1, "value": "8", "numericValue": 8}]})
    assert res.status_code == 200
    assert res.json()["responseId"] == 7


def test_submit_database_failure(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(m, "repo_submit_response", _db_down)
    res = client.post("/api/surveys/submit", json={"surveyId": 1, "answers": [{"questionId": 1, "value": "a"}]})
    assert res.status_code == 500
    assert res.json()["error"] == "Failed to submit survey"
    assert "connection refused" in res.json()["details"]


def test_submit_is_rate_limited(monkeypatch):
    client = _client(monkeypatch)
    for _ in range(config.RL_SUBMIT_LIMIT):
        assert client.post("/api/surveys/submit", json={}).status_code == 400
    res = client.post("/api/surveys/submit", json={})
    assert res.status_code == 429
    assert res.json()["detail"]["error"] == "Too many requests"
    assert "Retry-After" in res.headers


def test_completion_stats(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(
        m,
        "repo_completion_stats",
        lambda: {
            "total_responses": 14,
            "avg_response_time": 612.4,
            "manager_responses": 6,
            "sales_responses": 8,
            "efficiency_score": 8.0,
            "productivity_score": 9.0,
            "satisfaction_score": 7.0,
        },
    )
    body = client.get("/api/completion-stats").json()
    assert body["totalResponses"] == 14
    assert body["avgResponseTime"] == 612
    assert body["improvements"] == {"dataEntry": 18, "leadResponse": 40, "productivity": 40}


def test_completion_stats_fallback_on_database_error(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setattr(m, "repo_completion_stats", _db_down)
    res = client.get("/api/completion-stats")
    assert res.status_code == 200
    assert res.json() == {
        "totalResponses": 0,
        "avgResponseTime": 0,
        "managerResponses": 0,
        "salesResponses": 0,
        "improvements": {"dataEntry": 25, "leadResponse": 40, "productivity": 60},
    }
