import logging
from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..config import RL_SUBMIT_LIMIT, RL_WINDOW_SECONDS
from ..schemas import SubmissionRequest, SubmissionResponse
from ..services.answers import decode_json_field
from ..services.dashboard import build_completion_stats
from ..services.rate_limit import rate_limited

logger = logging.getLogger(__name__)

router = APIRouter()
scaffold_router = APIRouter()

RL_SUBMIT = rate_limited("survey_submit", RL_SUBMIT_LIMIT, RL_WINDOW_SECONDS)


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


def _question_payload(question: dict[str, Any]) -> dict[str, Any]:
    out = dict(question)
    out["options"] = decode_json_field(question.get("options"), []) if question.get("options") else None
    rules = question.get("validation_rules")
    out["validation_rules"] = decode_json_field(rules, {}) if rules else None
    return out


@scaffold_router.get("/health")
def surveys_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "surveys"}


@router.get("/api/surveys")
def list_surveys() -> Any:
    from .. import main as m

    try:
        return {"surveys": m.repo_list_active_surveys()}
    except SQLAlchemyError as exc:
        logger.exception("listing surveys failed")
        return _error(500, "Failed to fetch surveys", details=str(exc))


@router.get("/api/surveys/{survey_id}/questions")
def get_survey_questions(survey_id: str) -> Any:
    from .. import main as m

    try:
        sid = int(survey_id)
    except ValueError:
        return _error(400, "Invalid survey ID")

    try:
        survey = m.repo_get_survey(sid)
        if not survey:
            return _error(404, "Survey not found")
        questions = m.repo_list_survey_questions(sid)
    except SQLAlchemyError as exc:
        logger.exception("loading questions for survey %s failed", sid)
        return _error(500, "Failed to fetch survey questions", details=str(exc))
    return {"survey": survey, "questions": [_question_payload(q) for q in questions]}


@router.post("/api/surveys/submit", dependencies=[RL_SUBMIT])
def submit_survey(payload: Any = Body(default=None)) -> Any:
    from .. import main as m

    try:
        request = SubmissionRequest.model_validate(payload)
    except ValidationError:
        logger.warning("rejected submission: invalid request data")
        return _error(400, "Invalid request data")

    if not request.answers:
        logger.warning("rejected submission for survey %s: no answers", request.surveyId)
        return _error(400, "No answers provided")

    question_ids = [a.questionId for a in request.answers]
    try:
        existing = m.repo_existing_question_ids(request.surveyId, question_ids)
        missing = [qid for qid in question_ids if qid not in existing]
        if missing:
            logger.warning("rejected submission for survey %s: unknown questions %s", request.surveyId, missing)
            return _error(
                400,
                "Invalid question IDs",
                missingIds=missing,
                details=f"Question IDs {', '.join(str(q) for q in missing)} do not exist for survey {request.surveyId}",
            )

        answered = {a.questionId for a in request.answers if a.is_answered()}
        unanswered = [
            int(q["id"])
            for q in m.repo_list_survey_questions(request.surveyId)
            if q.get("is_required") and int(q["id"]) not in answered
        ]
        if unanswered:
            logger.warning("rejected submission for survey %s: required questions unanswered %s", request.surveyId, unanswered)
            return _error(
                400,
                "Missing required answers",
                missingIds=unanswered,
                details=f"Question IDs {', '.join(str(q) for q in unanswered)} require an answer",
            )

        response_id = m.repo_submit_response(
            request.surveyId,
            [
                {
                    "question_id": a.questionId,
                    "answer_value": a.stored_value(),
                    "answer_numeric": a.numericValue,
                    "confidence_score": a.confidenceScore,
                }
                for a in request.answers
            ],
            session_id=request.sessionId,
            started_at=request.startedAt,
            completed_at=request.completedAt,
            response_time=request.responseTime,
        )
    except SQLAlchemyError as exc:
        logger.exception("survey submission failed")
        return _error(500, "Failed to submit survey", details=str(exc))

    return SubmissionResponse(success=True, responseId=response_id, message="Survey submitted successfully")


@router.get("/api/completion-stats")
def completion_stats() -> dict[str, Any]:
    from .. import main as m

    try:
        stats = m.repo_completion_stats()
    except SQLAlchemyError:
        logger.exception("completion stats query failed, serving fallback")
        stats = None
    return build_completion_stats(stats)
