import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from ..auth.deps import get_current_viewer
from ..auth.security import authenticate, create_access_token
from ..config import ACCESS_TOKEN_TTL_MINUTES, RL_LOGIN_LIMIT, RL_WINDOW_SECONDS
from ..schemas import LoginRequest, TokenResponse
from ..services.presentation import ROLE_PERMISSIONS
from ..services.rate_limit import rate_limited

logger = logging.getLogger(__name__)

router = APIRouter()
scaffold_router = APIRouter()

RL_LOGIN = rate_limited("auth_login", RL_LOGIN_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def auth_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "auth"}


@router.post("/login", response_model=TokenResponse, dependencies=[RL_LOGIN])
def login(payload: LoginRequest) -> TokenResponse:
    role = authenticate(payload.username, payload.password)
    if role is None:
        logger.warning(f"[AUTH_FAILURE] invalid_credentials username={payload.username.strip().lower()}")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token(payload.username.strip().lower(), role)
    return TokenResponse(access_token=token, role=role, expires_in=ACCESS_TOKEN_TTL_MINUTES * 60)


@router.get("/me")
def me(viewer: dict[str, Any] = Depends(get_current_viewer)) -> dict[str, Any]:
    return {
        "username": viewer["username"],
        "role": viewer["role"],
        "permissions": dict(ROLE_PERMISSIONS[viewer["role"]]),
    }
