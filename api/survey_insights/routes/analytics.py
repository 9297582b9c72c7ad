import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..auth.deps import get_view_role
from ..services.dashboard import (
    Analysis,
    build_dashboard,
    build_process_view,
    build_recommendation_detail,
    build_recommendations_view,
    build_summary,
    build_team_view,
)

logger = logging.getLogger(__name__)

router = APIRouter()
scaffold_router = APIRouter()


def _failure(message: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": message, "details": str(exc)})


def _render(message: str, view: Callable[[Analysis], Any]) -> Any:
    from .. import main as m

    try:
        analysis = m.build_analysis()
    except SQLAlchemyError as exc:
        logger.exception("analytics data load failed")
        return _failure(message, exc)
    return view(analysis)


@scaffold_router.get("/health")
def analytics_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "analytics"}


@router.get("/api/analytics")
def analytics_dashboard(role: str = Depends(get_view_role)) -> Any:
    return _render("Failed to load analytics data", build_dashboard)


@router.get("/api/analytics/summary")
def analytics_summary(role: str = Depends(get_view_role)) -> Any:
    return _render("Failed to load analytics summary", lambda a: build_summary(a, role))


@router.get("/api/analytics/process")
def analytics_process(role: str = Depends(get_view_role)) -> Any:
    return _render("Failed to load process analytics", lambda a: build_process_view(a, role))


@router.get("/api/analytics/team")
def analytics_team(role: str = Depends(get_view_role)) -> Any:
    return _render("Failed to load team analytics", lambda a: build_team_view(a, role))


@router.get("/api/analytics/recommendations")
def analytics_recommendations(
    rec_id: str | None = Query(default=None, alias="id"),
    role: str = Depends(get_view_role),
) -> Any:
    if not rec_id:
        return _render("Failed to load recommendations", lambda a: build_recommendations_view(a, role))

    def detail(analysis: Analysis) -> Any:
        payload = build_recommendation_detail(analysis, rec_id, role)
        if payload is None:
            return JSONResponse(status_code=404, content={"error": "Recommendation not found"})
        return payload

    return _render("Failed to load recommendation details", detail)
