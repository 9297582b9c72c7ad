"""
Authentication dependencies for the analytics API.

Dashboard viewers authenticate with a bearer token issued by /auth/login.
The token carries the viewer's dashboard role; a viewer may ask for its own
role's view or a lower one, and admin may ask for any.
"""

import logging
import uuid
from typing import Any

from fastapi import Depends, Header, HTTPException, Query

from survey_insights.auth.security import decode_access_token
from survey_insights.config import DEV_MODE
from survey_insights.services.presentation import ROLES, VISIBLE_ROLES, normalize_role

logger = logging.getLogger(__name__)


class AuthError(Exception):
    def __init__(self, reason: str, detail: str = "unauthorized"):
        self.reason = reason
        self.detail = detail
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _log_auth_failure(reason: str, trace_id: str, token_prefix: str | None = None, payload: dict[str, Any] | None = None) -> None:
    log_data = {
        "trace_id": trace_id,
        "reason": reason,
        "token_prefix": token_prefix,
        "token_subject": payload.get("sub") if payload else None,
        "token_role": payload.get("role") if payload else None,
    }
    logger.warning(f"[AUTH_FAILURE] {log_data}")


def _unauthorized(message: str, reason: str, trace_id: str) -> HTTPException:
    detail: dict[str, Any] = {"message": message, "trace_id": trace_id}
    if DEV_MODE:
        detail["reason"] = reason
    return HTTPException(status_code=401, detail=detail)


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Authentication required")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def get_current_viewer(authorization: str | None = Header(default=None, alias="Authorization")) -> dict[str, Any]:
    try:
        token = _extract_bearer(authorization)
    except AuthError as e:
        _log_auth_failure(e.reason, e.trace_id)
        raise _unauthorized(e.detail, e.reason, e.trace_id)

    trace_id = str(uuid.uuid4())
    token_prefix = token[:8] + "..." if len(token) > 8 else token
    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        if e.status_code != 401:
            raise
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        _log_auth_failure(reason, trace_id, token_prefix)
        raise _unauthorized("unauthorized", reason, trace_id)

    role = normalize_role(payload.get("role"))
    if not payload.get("sub") or role is None:
        _log_auth_failure("token_missing_claims", trace_id, token_prefix, payload)
        raise _unauthorized("unauthorized", "token_missing_claims", trace_id)
    return {"username": str(payload["sub"]), "role": role}


def resolve_view_role(requested: str | None, viewer: dict[str, Any]) -> str:
    """Dashboard role to render for this viewer; 400 on unknown roles, 403 above the viewer's own."""
    if requested is None or not str(requested).strip():
        return viewer["role"]
    role = normalize_role(requested)
    if role is None:
        raise HTTPException(status_code=400, detail={"error": "Invalid role", "allowed": list(ROLES)})
    if role not in VISIBLE_ROLES.get(viewer["role"], set()):
        logger.warning(f"[AUTH_FAILURE] role_not_permitted viewer={viewer['username']} requested={role}")
        raise HTTPException(status_code=403, detail={"error": "Role not permitted", "role": role})
    return role


def get_view_role(
    role: str | None = Query(default=None),
    viewer: dict[str, Any] = Depends(get_current_viewer),
) -> str:
    return resolve_view_role(role, viewer)
