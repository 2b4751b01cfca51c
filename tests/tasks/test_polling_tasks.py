"""Tests for Celery polling task registration and execution."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from fusion_ingestor.exceptions import ConnectorNotFoundError, UpstreamError
from fusion_ingestor.tasks import POLLING_TASKS, app, run_poll_cycle
from fusion_ingestor.tasks.celery_app import build_beat_schedule


def test_one_task_per_registered_poller() -> None:
    assert sorted(POLLING_TASKS) == ["monday", "quickbooks", "slack", "teams"]
    assert POLLING_TASKS["slack"].name == "fusion_ingestor.tasks.polling.poll_slack_task"
    assert "fusion_ingestor.tasks.polling.poll_teams_task" in app.tasks


def test_beat_schedule_uses_poll_interval() -> None:
    schedule = build_beat_schedule(["slack", "monday"], 15)

    assert schedule == {
        "poll-slack": {
            "task": "fusion_ingestor.tasks.polling.poll_slack_task",
            "schedule": 900.0,
        },
        "poll-monday": {
            "task": "fusion_ingestor.tasks.polling.poll_monday_task",
            "schedule": 900.0,
        },
    }


def test_configured_app_schedules_enabled_pollers() -> None:
    assert set(app.conf.beat_schedule) == {"poll-slack", "poll-teams", "poll-monday", "poll-quickbooks"}


def test_run_poll_cycle_without_integrations() -> None:
    assert run_poll_cycle("quickbooks") == {"success": True, "processed": 0, "total": 0}


def test_run_poll_cycle_unknown_provider() -> None:
    with pytest.raises(ConnectorNotFoundError):
        run_poll_cycle("jira")


def test_task_runs_eagerly() -> None:
    result = POLLING_TASKS["teams"].apply()

    assert result.successful()
    assert result.get() == {"success": True, "processed": 0, "total": 0}


def test_cycle_level_failures_propagate() -> None:
    with patch(
        "fusion_ingestor.connectors.slack.SlackPoller.run_cycle",
        side_effect=UpstreamError("slack unavailable"),
    ):
        with pytest.raises(UpstreamError):
            run_poll_cycle("slack")
