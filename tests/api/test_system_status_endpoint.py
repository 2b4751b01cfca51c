"""Tests for the dashboard system status endpoint."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from fusion_ingestor.api.main import app

SAMPLE = {
    "integration_name": "slack",
    "success_count": 80,
    "failure_count": 20,
    "avg_response_time_ms": 500,
    "data_quality_score": 90,
    "uptime_percentage": 99,
}


@pytest.fixture(name="client")
def client_fixture() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def test_status_requires_authentication(client: TestClient) -> None:
    assert client.get("/api/v1/system/status").status_code == 401


def test_new_tenant_sees_baseline_status(client: TestClient, auth_headers) -> None:
    response = client.get("/api/v1/system/status", headers=auth_headers("fresh-user"))

    assert response.status_code == 200
    status = response.json()["system_status"]
    assert status["global_fusion_score"] == 50.0
    assert status["score_origin"] == "baseline"
    assert status["system_health"] == "observing"
    assert status["has_efficiency_metrics"] is False
    assert status["connected_integrations"] == []
    assert status["ai_insight_phase"] == "locked"
    assert status["phase_metadata"]["next_phase"] == "descriptive"


def test_integration_with_metrics_is_active(client: TestClient, auth_headers, make_integration) -> None:
    make_integration("user-1", "slack", external_id="T123")
    make_integration("user-1", "monday", display_name="Monday Boards")
    headers = auth_headers("user-1")
    client.post("/api/v1/fusion/efficiency", json={"metrics": [SAMPLE]}, headers=headers)

    status = client.get("/api/v1/system/status", headers=headers).json()["system_status"]

    assert status["global_fusion_score"] == 88.7
    assert status["score_origin"] == "computed"
    assert status["system_health"] == "active"
    assert status["has_efficiency_metrics"] is True
    assert {item["service_name"]: item["metrics_state"] for item in status["connected_integrations"]} == {
        "slack": "active",
        "monday": "observing",
    }
    assert status["ai_insight_phase"] == "descriptive"

    metadata = status["phase_metadata"]
    assert metadata["metrics_count"] == 1
    assert metadata["active_integrations_count"] == 1
    assert metadata["fusion_score_recalculations"] == 1
    assert metadata["next_phase"] == "diagnostic"
