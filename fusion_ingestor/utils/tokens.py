"""Bearer access token helpers for tenant-scoped endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from ..exceptions import AuthenticationError
from .config import GlobalSettings


def create_access_token(
    settings: GlobalSettings,
    user_id: str,
    *,
    expires_in: timedelta = timedelta(hours=1),
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Sign a token for ``user_id`` (used by the CLI and tests)."""

    if not settings.jwt_secret:
        raise AuthenticationError("JWT secret is not configured")

    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: GlobalSettings, token: str) -> dict[str, Any]:
    """Validate ``token`` and return its claims; the subject is the tenant id."""

    if not settings.jwt_secret:
        raise AuthenticationError("Bearer authentication is not configured")

    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as exc:
        raise AuthenticationError("Invalid or expired access token") from exc

    subject = str(claims.get("sub") or "").strip()
    if not subject:
        raise AuthenticationError("Access token missing subject")
    return claims
