import hmac
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from fastapi import HTTPException
from passlib.context import CryptContext

from survey_insights import config

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
ALGORITHM = "HS256"
HASH_PREFIX = "$argon2"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, secret: str) -> bool:
    if secret.startswith(HASH_PREFIX):
        return pwd_context.verify(password, secret)
    return hmac.compare_digest(password.encode("utf-8"), secret.encode("utf-8"))


def parse_user_table(raw: str) -> dict[str, str]:
    """Parse "user:secret,user2:secret2"; entries without a secret are dropped."""
    out: dict[str, str] = {}
    for entry in (raw or "").split(","):
        username, sep, secret = entry.strip().partition(":")
        if not sep or not username.strip() or not secret:
            continue
        out[username.strip().lower()] = secret
    return out


def configured_users() -> dict[str, tuple[str, str]]:
    """username -> (role, secret). Later tables win on duplicate names."""
    users: dict[str, tuple[str, str]] = {}
    for role, raw in (
        ("assessor", config.ANALYTICS_ASSESSOR_USERS),
        ("coordinator", config.ANALYTICS_COORDINATOR_USERS),
        ("admin", config.ANALYTICS_ADMIN_USERS),
    ):
        for username, secret in parse_user_table(raw).items():
            users[username] = (role, secret)
    return users


def authenticate(username: str, password: str) -> str | None:
    entry = configured_users().get(username.strip().lower())
    if entry is None:
        return None
    role, secret = entry
    return role if verify_password(password, secret) else None


def create_access_token(username: str, role: str, ttl_minutes: int | None = None) -> str:
    if not config.JWT_SECRET:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=ttl_minutes or config.ACCESS_TOKEN_TTL_MINUTES)
    payload: dict[str, Any] = {
        "sub": username,
        "role": role,
        "scope": "analytics",
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    if not config.JWT_SECRET:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[ALGORITHM])
        if not isinstance(payload, dict):
            raise HTTPException(status_code=401, detail="Invalid token")
        return payload
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=401, detail="Token expired") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
