"""Pytest configuration - no path manipulation, rely on proper package installation."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.orm import Session, sessionmaker

from fusion_ingestor.models.base import get_session_factory, reset_engine, session_scope
from fusion_ingestor.models.integration import UserIntegration
from fusion_ingestor.models.repository import IntegrationCreate, IntegrationRepository
from fusion_ingestor.utils.config import GlobalSettings, get_settings
from fusion_ingestor.utils.tokens import create_access_token

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"

_UNSET_VARIABLES = (
    "FUSION_ENVIRONMENT",
    "FUSION_CONFIG_PROFILE",
    "FUSION_SLACK_SIGNING_SECRET",
    "FUSION_ENGINE_URL",
    "FUSION_ENGINE_API_KEY",
    "FUSION_REDIS_URL",
)


@pytest.fixture(autouse=True)
def _isolated_runtime(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Give every test its own SQLite database and a known set of secrets."""

    for name in _UNSET_VARIABLES:
        monkeypatch.delenv(name, raising=False)

    monkeypatch.setenv("FUSION_DATABASE_URL", f"sqlite:///{tmp_path / 'fusion.sqlite'}")
    monkeypatch.setenv("FUSION_API_KEYS", '["test-key"]')
    monkeypatch.setenv("FUSION_JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("FUSION_CONFIG_DIR", str(CONFIG_DIR))

    reset_engine()
    get_settings(reload=True)
    yield
    reset_engine()
    get_settings(reload=True)


@pytest.fixture
def settings() -> GlobalSettings:
    return get_settings()


@pytest.fixture
def session_factory() -> sessionmaker[Session]:
    return get_session_factory()


@pytest.fixture
def make_integration(
    session_factory: sessionmaker[Session],
) -> Callable[..., UserIntegration]:
    """Factory inserting a tenant integration and returning the detached row."""

    def _make(
        user_id: str,
        service_name: str,
        *,
        external_id: str | None = None,
        display_name: str | None = None,
        credentials: dict[str, Any] | None = None,
        status: str = "active",
    ) -> UserIntegration:
        with session_scope(session_factory) as session:
            return IntegrationRepository(session).create(
                IntegrationCreate(
                    user_id=user_id,
                    service_name=service_name,
                    external_id=external_id,
                    display_name=display_name,
                    credentials=credentials,
                    status=status,
                )
            )

    return _make


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Build a bearer Authorization header for a tenant."""

    def _headers(user_id: str = "user-1") -> dict[str, str]:
        token = create_access_token(get_settings(), user_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
