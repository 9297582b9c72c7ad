import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import text

from survey_insights.config import STATS_WINDOW_DAYS
from survey_insights.database import SessionLocal


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def list_active_surveys() -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT s.id, s.name, s.description, s.target_role, s.version, s.created_at,
                       COUNT(q.id) AS question_count
                FROM surveys s
                LEFT JOIN questions q ON q.survey_id = s.id
                WHERE s.is_active = true
                GROUP BY s.id
                ORDER BY s.id
                """
            )
        ).mappings().all()
    return [dict(r) for r in rows]


def get_survey(survey_id: int) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text("SELECT * FROM surveys WHERE id=:id AND is_active = true"),
            {"id": survey_id},
        ).mappings().first()
    return dict(row) if row else None


def list_survey_questions(survey_id: int) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT id, survey_id, section, question_text, question_type, question_order,
                       is_required, options, validation_rules, analysis_tags
                FROM questions
                WHERE survey_id=:survey_id
                ORDER BY question_order
                """
            ),
            {"survey_id": survey_id},
        ).mappings().all()
    return [dict(r) for r in rows]


def existing_question_ids(survey_id: int, question_ids: list[int]) -> set[int]:
    if not question_ids:
        return set()
    with SessionLocal() as db:
        rows = db.execute(
            text("SELECT id FROM questions WHERE survey_id=:survey_id AND id = ANY(:ids)"),
            {"survey_id": survey_id, "ids": list(question_ids)},
        ).mappings().all()
    return {int(r["id"]) for r in rows}


def fetch_analysis_rows() -> dict[str, list[dict[str, Any]]]:
    """Questions, complete responses (with the survey's target role) and their answers."""
    with SessionLocal() as db:
        questions = db.execute(
            text(
                """
                SELECT id, survey_id, section, question_text, question_type, question_order,
                       options, validation_rules, analysis_tags
                FROM questions
                ORDER BY survey_id, question_order
                """
            )
        ).mappings().all()
        responses = db.execute(
            text(
                """
                SELECT r.id, r.survey_id, r.session_id, r.started_at, r.completed_at,
                       r.is_complete, r.response_time_seconds, s.target_role
                FROM responses r
                JOIN surveys s ON s.id = r.survey_id
                WHERE r.is_complete = true
                """
            )
        ).mappings().all()
        answers = db.execute(
            text(
                """
                SELECT a.id, a.response_id, a.question_id, a.answer_value, a.answer_numeric, a.confidence_score
                FROM answers a
                JOIN responses r ON r.id = a.response_id
                WHERE r.is_complete = true
                ORDER BY a.id
                """
            )
        ).mappings().all()
    return {
        "questions": [dict(r) for r in questions],
        "responses": [dict(r) for r in responses],
        "answers": [dict(r) for r in answers],
    }


def submit_response(
    survey_id: int,
    answers: list[dict[str, Any]],
    *,
    session_id: str | None = None,
    started_at: datetime | None = None,
    completed_at: datetime | None = None,
    response_time: int = 0,
) -> int:
    """Response row, answer rows and the completion mark are written in one transaction."""
    session_id = session_id or f"session_{uuid.uuid4().hex[:12]}"
    with SessionLocal() as db:
        try:
            response_id = db.execute(
                text(
                    """
                    INSERT INTO responses (survey_id, user_id, session_id, is_anonymous, started_at)
                    VALUES (:survey_id, NULL, :session_id, true, :started_at)
                    RETURNING id
                    """
                ),
                {"survey_id": survey_id, "session_id": session_id, "started_at": started_at or _now_utc()},
            ).scalar_one()
            for answer in answers:
                db.execute(
                    text(
                        """
                        INSERT INTO answers (response_id, question_id, answer_value, answer_numeric, confidence_score)
                        VALUES (:response_id, :question_id, :answer_value, :answer_numeric, :confidence_score)
                        """
                    ),
                    {
                        "response_id": response_id,
                        "question_id": answer["question_id"],
                        "answer_value": answer.get("answer_value"),
                        "answer_numeric": answer.get("answer_numeric"),
                        "confidence_score": answer.get("confidence_score"),
                    },
                )
            db.execute(
                text(
                    """
                    UPDATE responses
                    SET is_complete = true, completed_at = :completed_at, response_time_seconds = :response_time
                    WHERE id = :id
                    """
                ),
                {"id": response_id, "completed_at": completed_at or _now_utc(), "response_time": int(response_time or 0)},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
    return int(response_id)


def _tag_filter(tag: str) -> str:
    # analysis_tags is a comma-separated list; match whole tags so "efficiency" skips "time_efficiency".
    return f"(',' || replace(q.analysis_tags, ' ', '') || ',') LIKE '%,{tag},%'"


def completion_stats(now: datetime | None = None) -> dict[str, Any]:
    since = (now or _now_utc()) - timedelta(days=STATS_WINDOW_DAYS)
    with SessionLocal() as db:
        counts = db.execute(
            text(
                """
                SELECT COUNT(*) AS total_responses,
                       AVG(r.response_time_seconds) AS avg_response_time,
                       COUNT(*) FILTER (WHERE s.target_role = 'manager') AS manager_responses,
                       COUNT(*) FILTER (WHERE s.target_role = 'sales') AS sales_responses
                FROM responses r
                JOIN surveys s ON s.id = r.survey_id
                WHERE r.is_complete = true AND r.completed_at >= :since
                """
            ),
            {"since": since},
        ).mappings().first()
        scores = db.execute(
            text(
                f"""
                SELECT AVG(a.answer_numeric) FILTER (WHERE {_tag_filter("efficiency")}) AS efficiency_score,
                       AVG(a.answer_numeric) FILTER (WHERE {_tag_filter("productivity")}) AS productivity_score,
                       AVG(a.answer_numeric) FILTER (WHERE {_tag_filter("satisfaction")}) AS satisfaction_score
                FROM answers a
                JOIN questions q ON q.id = a.question_id
                JOIN responses r ON r.id = a.response_id
                WHERE r.is_complete = true AND r.completed_at >= :since AND a.answer_numeric IS NOT NULL
                """
            ),
            {"since": since},
        ).mappings().first()
    return {**dict(counts or {}), **dict(scores or {})}
