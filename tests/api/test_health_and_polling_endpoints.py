"""Tests for health, metrics and on-demand polling endpoints."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from fusion_ingestor.api.main import app
from fusion_ingestor.utils.health import ComponentHealth, HealthStatus, get_health_checker

API_KEY_HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture(autouse=True)
def reset_health_checker():
    """Reset health checker before each test."""
    from fusion_ingestor.utils import health

    health._health_checker = None
    yield
    health._health_checker = None


@pytest.fixture(name="client")
def client_fixture() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def test_health_is_degraded_without_redis(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["service"] == "fusion_ingestor"
    assert data["components"]["database"]["status"] == "healthy"
    assert data["components"]["redis"]["status"] == "degraded"
    assert data["components"]["fusion_engine"]["metadata"] == {"mode": "null"}


def test_health_is_unavailable_when_database_fails(client: TestClient) -> None:
    def failing_database() -> ComponentHealth:
        return ComponentHealth(name="database", status=HealthStatus.UNHEALTHY, message="down")

    get_health_checker().register_check("database", failing_database)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_metrics_endpoint_exposes_prometheus_text(client: TestClient) -> None:
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "webhook_deliveries" in response.text


def test_poll_providers_require_api_key(client: TestClient) -> None:
    missing = client.get("/api/v1/poll/providers")
    wrong = client.get("/api/v1/poll/providers", headers={"X-API-Key": "nope"})

    assert missing.status_code == 401
    assert missing.json() == {"error": "Unauthorized"}
    assert wrong.status_code == 403
    assert wrong.json() == {"error": "Forbidden"}


def test_poll_providers_are_listed(client: TestClient) -> None:
    response = client.get("/api/v1/poll/providers", headers=API_KEY_HEADERS)

    assert response.json() == {"providers": ["monday", "quickbooks", "slack", "teams"]}


def test_poll_unknown_provider_is_not_found(client: TestClient) -> None:
    response = client.post("/api/v1/poll/jira", headers=API_KEY_HEADERS)

    assert response.status_code == 404
    assert "Available pollers" in response.json()["error"]


def test_poll_without_integrations_reports_empty_cycle(client: TestClient) -> None:
    response = client.post("/api/v1/poll/slack", headers=API_KEY_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"success": True, "processed": 0, "total": 0}
