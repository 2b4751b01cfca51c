"""Slack Web API poller."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from ..exceptions import UpstreamError
from ..models.integration import UserIntegration
from .base import BasePoller


class SlackPoller(BasePoller):
    """Summarizes workspace and channel activity through the Slack Web API."""

    service_name = "slack"
    source = "slack_api_poll"
    event_type = "slack.workspace_activity"

    async def _call(self, client: httpx.AsyncClient, method: str, token: str, **params: Any) -> dict[str, Any]:
        data = await self.request_json(
            client,
            "GET",
            f"{self.settings.slack_api_base}/{method}",
            headers={"Authorization": f"Bearer {token}"},
            params=params or None,
        )
        # Slack reports most failures as 200 responses with ok=false.
        if not data.get("ok"):
            raise UpstreamError(f"Slack {method} failed: {data.get('error', 'unknown_error')}")
        return data

    async def fetch_metrics(
        self,
        client: httpx.AsyncClient,
        integration: UserIntegration,
        credentials: dict[str, Any],
        *,
        now: datetime,
    ) -> dict[str, Any]:
        token = credentials["access_token"]
        team = await self._call(client, "team.info", token)
        conversations = await self._call(
            client,
            "conversations.list",
            token,
            limit=100,
            types="public_channel,private_channel",
            exclude_archived="true",
        )

        channels = conversations.get("channels") or []
        return {
            "team_id": (team.get("team") or {}).get("id"),
            "team_name": (team.get("team") or {}).get("name"),
            "channel_count": len(channels),
            "member_channel_count": sum(1 for channel in channels if channel.get("is_member")),
            "total_members": sum(int(channel.get("num_members") or 0) for channel in channels),
        }

    def has_activity(self, metrics: dict[str, Any]) -> bool:
        return metrics.get("channel_count", 0) > 0
