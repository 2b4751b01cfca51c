"""Request authentication: operator API keys and tenant bearer tokens."""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from fastapi import Depends, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from ..exceptions import AuthenticationError, PermissionDeniedError
from ..utils.config import GlobalSettings, get_settings
from ..utils.tokens import decode_access_token

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class AuthenticatedUser:
    """Tenant resolved from the ``sub`` claim; all tenant queries filter on ``user_id``."""

    user_id: str
    email: str | None = None


def settings_dependency() -> GlobalSettings:
    return get_settings()


async def require_api_key(
    x_api_key: str | None = Security(api_key_header),
    settings: GlobalSettings = Depends(settings_dependency),
) -> str:
    """Guard operator routes (manual polls, reliability updates) with a shared key."""

    if not settings.api_keys:
        raise AuthenticationError("API key authentication is not configured")
    if x_api_key is None:
        raise AuthenticationError("Missing API key")

    matched = next((key for key in settings.api_keys if secrets.compare_digest(x_api_key, key)), None)
    if matched is None:
        raise PermissionDeniedError("Invalid API key")
    return matched


async def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: GlobalSettings = Depends(settings_dependency),
) -> AuthenticatedUser:
    """Resolve the tenant from a bearer access token."""

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing bearer token")

    claims = decode_access_token(settings, credentials.credentials)
    email = claims.get("email")
    return AuthenticatedUser(user_id=str(claims["sub"]).strip(), email=str(email) if email else None)
