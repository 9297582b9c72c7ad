from fastapi import APIRouter, FastAPI

from .analytics import router as analytics_router, scaffold_router as analytics_scaffold_router
from .auth import router as auth_router, scaffold_router as auth_scaffold_router
from .surveys import router as surveys_router, scaffold_router as surveys_scaffold_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(surveys_router, tags=["surveys"])
    app.include_router(analytics_router, tags=["analytics"])

    app.include_router(auth_scaffold_router, prefix="/_scaffold/auth", tags=["scaffold-auth"])
    app.include_router(surveys_scaffold_router, prefix="/_scaffold/surveys", tags=["scaffold-surveys"])
    app.include_router(analytics_scaffold_router, prefix="/_scaffold/analytics", tags=["scaffold-analytics"])


__all__ = ["include_modular_routers", "APIRouter"]
