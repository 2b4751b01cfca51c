"""Tests for the operator command line interface."""

from __future__ import annotations

import json

from click.testing import CliRunner

from fusion_ingestor.cli.main import cli
from fusion_ingestor.schemas.requests import MetricSampleInput
from fusion_ingestor.services.fusion_service import FusionMetricsService


def test_providers_lists_pollers() -> None:
    result = CliRunner().invoke(cli, ["providers"])

    assert result.exit_code == 0
    assert result.output.split() == ["monday", "quickbooks", "slack", "teams"]


def test_poll_prints_summary() -> None:
    result = CliRunner().invoke(cli, ["poll", "slack"])

    assert result.exit_code == 0
    assert "Poll cycle for slack: 0/0 processed" in result.output


def test_poll_json_output() -> None:
    result = CliRunner().invoke(cli, ["poll", "monday", "--json"])

    assert result.exit_code == 0
    assert json.loads(result.output) == {"success": True, "processed": 0, "total": 0}


def test_poll_rejects_unknown_provider() -> None:
    result = CliRunner().invoke(cli, ["poll", "jira"])

    assert result.exit_code != 0


def test_learning_state_output(settings, session_factory) -> None:
    sample = MetricSampleInput(
        integration_name="crm",
        success_count=95,
        failure_count=5,
        avg_response_time_ms=300,
        data_quality_score=88,
        uptime_percentage=99.5,
    )
    FusionMetricsService(settings, session_factory).process_batch("user-1", [sample])

    text_result = CliRunner().invoke(cli, ["learning-state", "user-1"])
    json_result = CliRunner().invoke(cli, ["learning-state", "user-1", "--json"])

    assert text_result.exit_code == 0
    assert "crm" in text_result.output
    assert "observe" in text_result.output

    payload = json.loads(json_result.output)
    assert payload["success"] is True
    assert payload["learning_states"][0]["snapshot_count"] == 1


def test_serve_runs_the_api_under_uvicorn(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(
        "fusion_ingestor.cli.main.uvicorn.run", lambda app, **kwargs: calls.append((app, kwargs))
    )

    result = CliRunner().invoke(cli, ["serve", "--host", "127.0.0.1", "--port", "9001"])

    assert result.exit_code == 0
    assert calls == [
        ("fusion_ingestor.api.main:app", {"host": "127.0.0.1", "port": 9001, "reload": False})
    ]
