import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from . import repo as survey_repo
from .config import CORS_ORIGINS
from .database import SessionLocal
from .routes import include_modular_routers
from .services.dashboard import Analysis
from .services.metrics import ResponseSet

logger = logging.getLogger(__name__)

app = FastAPI(title="Survey Insights API")
include_modular_routers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _migrations_dir() -> Path:
    env_dir = os.getenv("MIGRATIONS_DIR", "").strip()
    docker_dir = Path("/app/migrations")
    local_dir = Path(__file__).resolve().parents[1] / "migrations"

    if env_dir:
        migrations_dir = Path(env_dir)
    elif docker_dir.exists():
        migrations_dir = docker_dir
    else:
        migrations_dir = local_dir

    if not migrations_dir.exists() or not migrations_dir.is_dir():
        raise FileNotFoundError(
            "Migrations directory not found. Checked: "
            f"MIGRATIONS_DIR={env_dir or '<unset>'}, {docker_dir}, {local_dir}"
        )
    return migrations_dir


def run_migrations() -> list[str]:
    """Apply every .sql file in name order. Files are idempotent, so reruns are safe."""
    migrations_dir = _migrations_dir()
    files = sorted(f.name for f in migrations_dir.iterdir() if f.is_file() and f.suffix == ".sql")
    with SessionLocal() as db:
        for fname in files:
            db.execute(text((migrations_dir / fname).read_text(encoding="utf-8")))
            logger.info("applied migration %s", fname)
        db.commit()
    return files


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for attempt in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            logger.info("database not ready (attempt %s/%s)", attempt + 1, max_attempts)
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    applied = run_migrations()
    logger.info("startup complete, %s migration files applied", len(applied))


def repo_list_active_surveys() -> list[dict[str, Any]]:
    return survey_repo.list_active_surveys()


def repo_get_survey(survey_id: int) -> dict[str, Any] | None:
    return survey_repo.get_survey(survey_id)


def repo_list_survey_questions(survey_id: int) -> list[dict[str, Any]]:
    return survey_repo.list_survey_questions(survey_id)


def repo_existing_question_ids(survey_id: int, question_ids: list[int]) -> set[int]:
    return survey_repo.existing_question_ids(survey_id, question_ids)


def repo_submit_response(survey_id: int, answers: list[dict[str, Any]], **kwargs: Any) -> int:
    response_id = survey_repo.submit_response(survey_id, answers, **kwargs)
    logger.info("stored response %s for survey %s with %s answers", response_id, survey_id, len(answers))
    return response_id


def repo_completion_stats() -> dict[str, Any]:
    return survey_repo.completion_stats()


def repo_fetch_analysis_rows() -> dict[str, list[dict[str, Any]]]:
    return survey_repo.fetch_analysis_rows()


def build_analysis(now: datetime | None = None) -> Analysis:
    rows = repo_fetch_analysis_rows()
    rs = ResponseSet(rows["questions"], rows["responses"], rows["answers"], now=now)
    return Analysis(rs)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
