from datetime import datetime, timedelta, timezone

import pytest

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def question(qid, qtype, tags, section="General", survey_id=1, order=None):
    return {
        "id": qid,
        "survey_id": survey_id,
        "section": section,
        "question_text": f"Question {qid}",
        "question_type": qtype,
        "question_order": order or qid,
        "options": None,
        "validation_rules": None,
        "analysis_tags": tags,
    }


def response(rid, *, complete=True, role="manager", days_ago=1, seconds=600):
    return {
        "id": rid,
        "survey_id": 1 if role == "manager" else 2,
        "session_id": f"s{rid}",
        "is_complete": complete,
        "completed_at": NOW - timedelta(days=days_ago) if complete else None,
        "response_time_seconds": seconds,
        "target_role": role,
    }


def answer(aid, rid, qid, value=None, numeric=None, confidence=None):
    return {
        "id": aid,
        "response_id": rid,
        "question_id": qid,
        "answer_value": value,
        "answer_numeric": numeric,
        "confidence_score": confidence,
    }


def likert_rows(qid, tags, values, *, start_rid=1, section="General"):
    """One complete response per likert value, all answering question ``qid``."""
    questions = [question(qid, "likert", tags, section=section)]
    responses = [response(start_rid + i) for i in range(len(values))]
    answers = [answer(100 + start_rid + i, start_rid + i, qid, str(v), v) for i, v in enumerate(values)]
    return questions, responses, answers


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    from survey_insights.services.rate_limit import limiter

    limiter.reset()
    yield
    limiter.reset()
