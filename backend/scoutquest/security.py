from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt
from scoutquest.config import settings

ROLES = ("scout", "parent", "leader")

def make_access_token(sub: str, role: str, ttl_min: int | None = None) -> str:
    """Issued by the identity service in production; kept here for tooling and tests."""
    if role not in ROLES:
        raise ValueError(f"unknown role {role!r}")
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "role": role,
        "type": "access",
        "iat": now.timestamp(),
        "exp": int((now + timedelta(minutes=ttl_min or settings.access_ttl_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)

def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
