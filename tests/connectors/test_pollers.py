"""Tests for the scheduled vendor pollers using mocked HTTP transports."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
from sqlalchemy import select

from fusion_ingestor.connectors import (
    get_poller,
    list_pollers,
)
from fusion_ingestor.connectors.monday import MondayPoller
from fusion_ingestor.connectors.quickbooks import QuickBooksPoller
from fusion_ingestor.connectors.slack import SlackPoller
from fusion_ingestor.connectors.teams import TeamsPoller
from fusion_ingestor.exceptions import ConnectorNotFoundError
from fusion_ingestor.models.base import as_utc, session_scope
from fusion_ingestor.models.integration import IngestionState, IntegrationEvent

NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def build_transport(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


def _slack_handler(request: httpx.Request) -> httpx.Response:
    token = request.headers.get("Authorization", "")
    if token == "Bearer revoked":
        return httpx.Response(200, json={"ok": False, "error": "invalid_auth"})
    if request.url.path.endswith("/team.info"):
        return httpx.Response(200, json={"ok": True, "team": {"id": "T1", "name": "Acme"}})
    if request.url.path.endswith("/conversations.list"):
        return httpx.Response(
            200,
            json={
                "ok": True,
                "channels": [
                    {"id": "C1", "is_member": True, "num_members": 5},
                    {"id": "C2", "is_member": False, "num_members": 3},
                ],
            },
        )
    return httpx.Response(404)


def _events(session_factory) -> list[IntegrationEvent]:
    with session_scope(session_factory) as session:
        return list(session.scalars(select(IntegrationEvent).order_by(IntegrationEvent.id)))


def test_registry_lists_every_provider() -> None:
    assert sorted(list_pollers()) == ["monday", "quickbooks", "slack", "teams"]
    assert get_poller("teams") is TeamsPoller
    with pytest.raises(ConnectorNotFoundError):
        get_poller("jira")


@pytest.mark.asyncio
async def test_slack_cycle_stores_event_and_cursor(settings, session_factory, make_integration) -> None:
    integration = make_integration("user-1", "slack", credentials={"access_token": "xoxb-1"})
    poller = SlackPoller(settings, session_factory, transport=build_transport(_slack_handler))

    result = await poller.run_cycle(now=NOW)

    assert result == {"success": True, "processed": 1, "total": 1}

    events = _events(session_factory)
    assert len(events) == 1
    assert events[0].source == "slack_api_poll"
    assert events[0].event_type == "slack.workspace_activity"
    assert events[0].event_metadata["channel_count"] == 2
    assert events[0].event_metadata["total_members"] == 8

    with session_scope(session_factory) as session:
        state = session.scalars(select(IngestionState)).one()
        assert state.user_integration_id == integration.id
        assert as_utc(state.next_poll_after) == NOW + timedelta(minutes=15)
        assert state.state_metadata["last_metrics"]["team_name"] == "Acme"


@pytest.mark.asyncio
async def test_cooldown_skips_tenant_until_next_poll(settings, session_factory, make_integration) -> None:
    make_integration("user-1", "slack", credentials={"access_token": "xoxb-1"})
    poller = SlackPoller(settings, session_factory, transport=build_transport(_slack_handler))

    await poller.run_cycle(now=NOW)
    during = await poller.run_cycle(now=NOW + timedelta(minutes=5))
    after = await poller.run_cycle(now=NOW + timedelta(minutes=16))

    assert during == {"success": True, "processed": 0, "total": 1}
    assert after == {"success": True, "processed": 1, "total": 1}
    assert len(_events(session_factory)) == 2

    with session_scope(session_factory) as session:
        assert len(session.scalars(select(IngestionState)).all()) == 1


@pytest.mark.asyncio
async def test_tenant_failures_do_not_stop_the_cycle(settings, session_factory, make_integration) -> None:
    make_integration("user-1", "slack", credentials={"access_token": "revoked"})
    make_integration("user-2", "slack", credentials=None)
    make_integration("user-3", "slack", credentials={"access_token": "xoxb-3"})
    poller = SlackPoller(settings, session_factory, transport=build_transport(_slack_handler))

    result = await poller.run_cycle(now=NOW)

    assert result["success"] is True
    assert result["processed"] == 1
    assert result["total"] == 3
    assert result["errors"] == [
        "Error for user user-1: Slack team.info failed: invalid_auth",
        "Missing credentials for user user-2",
    ]
    assert [event.user_id for event in _events(session_factory)] == ["user-3"]


@pytest.mark.asyncio
async def test_http_errors_are_reported_per_tenant(settings, session_factory, make_integration) -> None:
    make_integration("user-1", "slack", credentials={"access_token": "xoxb-1"})
    poller = SlackPoller(
        settings,
        session_factory,
        transport=build_transport(lambda request: httpx.Response(503)),
    )

    result = await poller.run_cycle(now=NOW)

    assert result["processed"] == 0
    assert result["errors"] == ["Error for user user-1: slack API returned 503"]


@pytest.mark.asyncio
async def test_inactive_integrations_are_not_polled(settings, session_factory, make_integration) -> None:
    make_integration("user-1", "slack", credentials={"access_token": "xoxb-1"}, status="revoked")
    poller = SlackPoller(settings, session_factory, transport=build_transport(_slack_handler))

    assert await poller.run_cycle(now=NOW) == {"success": True, "processed": 0, "total": 0}


@pytest.mark.asyncio
async def test_teams_cycle(settings, session_factory, make_integration) -> None:
    make_integration("user-1", "microsoft_teams", credentials={"access_token": "graph-token"})

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer graph-token"
        if request.url.path.endswith("/me/joinedTeams"):
            return httpx.Response(200, json={"value": [{"id": "team-1"}]})
        return httpx.Response(
            200, json={"value": [{"chatType": "group"}, {"chatType": "oneOnOne"}]}
        )

    result = await TeamsPoller(settings, session_factory, transport=build_transport(handler)).run_cycle(now=NOW)

    assert result["processed"] == 1
    event = _events(session_factory)[0]
    assert event.service_name == "microsoft_teams"
    assert event.source == "msgraph_poll"
    assert event.event_metadata == {"team_count": 1, "chat_count": 2, "group_chat_count": 1}


@pytest.mark.asyncio
async def test_monday_cycle_counts_recent_boards(settings, session_factory, make_integration) -> None:
    make_integration("user-1", "monday", credentials={"api_key": "monday-key"})

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "monday-key"
        return httpx.Response(
            200,
            json={
                "data": {
                    "boards": [
                        {"id": "1", "updated_at": "2026-10-18T08:00:00Z", "items_count": 4},
                        {"id": "2", "updated_at": "2026-10-01T08:00:00Z", "items_count": 6},
                    ]
                }
            },
        )

    result = await MondayPoller(settings, session_factory, transport=build_transport(handler)).run_cycle(now=NOW)

    assert result["processed"] == 1
    assert _events(session_factory)[0].event_metadata == {
        "board_count": 2,
        "total_items": 10,
        "recently_updated_boards": 1,
    }


@pytest.mark.asyncio
async def test_monday_graphql_errors_are_reported(settings, session_factory, make_integration) -> None:
    make_integration("user-1", "monday", credentials={"api_key": "monday-key"})
    transport = build_transport(
        lambda request: httpx.Response(200, json={"errors": [{"message": "Not authenticated"}]})
    )

    result = await MondayPoller(settings, session_factory, transport=transport).run_cycle(now=NOW)

    assert result["errors"] == ["Error for user user-1: Monday GraphQL error: Not authenticated"]


@pytest.mark.asyncio
async def test_quickbooks_uses_realm_from_external_id(settings, session_factory, make_integration) -> None:
    make_integration(
        "user-1", "quickbooks", external_id="9130", credentials={"access_token": "qb-token"}
    )
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if "/companyinfo/" in request.url.path:
            return httpx.Response(200, json={"CompanyInfo": {"CompanyName": "Acme Books"}})
        return httpx.Response(
            200,
            json={"QueryResponse": {"Invoice": [{"Balance": "120.50"}, {"Balance": 79.5}]}},
        )

    result = await QuickBooksPoller(settings, session_factory, transport=build_transport(handler)).run_cycle(now=NOW)

    assert result["processed"] == 1
    assert seen == ["/v3/company/9130/companyinfo/9130", "/v3/company/9130/query"]
    metadata: dict[str, Any] = _events(session_factory)[0].event_metadata
    assert metadata["company_name"] == "Acme Books"
    assert metadata["invoice_count"] == 2
    assert metadata["open_balance"] == 200.0


@pytest.mark.asyncio
async def test_quickbooks_without_realm_reports_missing_credentials(
    settings, session_factory, make_integration
) -> None:
    make_integration("user-1", "quickbooks", credentials={"access_token": "qb-token"})
    transport = build_transport(lambda request: httpx.Response(500))

    result = await QuickBooksPoller(settings, session_factory, transport=transport).run_cycle(now=NOW)

    assert result["errors"] == ["Missing credentials for user user-1"]
