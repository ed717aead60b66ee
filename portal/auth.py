"""JWT-based authentication for the web portal."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Header, HTTPException, Query

from taskflow.config import get_settings
from taskflow.permissions import Actor

JWT_ALGORITHM = "HS256"


@dataclass
class PortalUser:
    """Authenticated portal user. Injected by require_auth."""

    user_id: int
    role: str
    email: str = ""

    @property
    def actor(self) -> Actor:
        return Actor(id=self.user_id, system_role=self.role)


def create_access_token(user_id: int, role: str, email: str = "") -> str:
    """Sign a portal token. Login lives elsewhere; this is for callers that mint tokens."""
    settings = get_settings()
    if not settings.portal_jwt_secret:
        raise RuntimeError("portal_jwt_secret is not configured")
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "email": email,
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_expiry_hours),
    }
    return jwt.encode(payload, settings.portal_jwt_secret, algorithm=JWT_ALGORITHM)


def _decode_token(token: str) -> PortalUser:
    """Decode and validate a JWT, returning a PortalUser."""
    settings = get_settings()
    if not settings.portal_jwt_secret:
        raise HTTPException(status_code=503, detail="Portal auth not configured")
    try:
        payload = jwt.decode(
            token, settings.portal_jwt_secret, algorithms=[JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        user = PortalUser(
            user_id=int(payload["sub"]),
            role=payload.get("role", "member"),
            email=payload.get("email", ""),
        )
        # Reject unknown roles up front rather than on the first permission check
        Actor(id=user.user_id, system_role=user.role)
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    return user


async def require_auth(
    authorization: str | None = Header(None),
    token: str | None = Query(None),
) -> PortalUser:
    """FastAPI dependency: extract and validate JWT from the Authorization header.

    Expects: Authorization: Bearer <jwt>. Download links may pass
    ?token=<jwt> instead.
    """
    if authorization and authorization.startswith("Bearer "):
        return _decode_token(authorization[7:])
    if token:
        return _decode_token(token)
    raise HTTPException(status_code=401, detail="Missing Bearer token")
