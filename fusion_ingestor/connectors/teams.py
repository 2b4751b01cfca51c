"""Microsoft Teams poller backed by Microsoft Graph."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from ..models.integration import UserIntegration
from .base import BasePoller


class TeamsPoller(BasePoller):
    service_name = "microsoft_teams"
    source = "msgraph_poll"
    event_type = "teams.chat_activity"

    async def fetch_metrics(
        self,
        client: httpx.AsyncClient,
        integration: UserIntegration,
        credentials: dict[str, Any],
        *,
        now: datetime,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {credentials['access_token']}"}
        teams = await self.request_json(
            client, "GET", f"{self.settings.graph_api_base}/me/joinedTeams", headers=headers
        )
        chats = await self.request_json(
            client,
            "GET",
            f"{self.settings.graph_api_base}/me/chats",
            headers=headers,
            params={"$top": 50},
        )

        chat_items = chats.get("value") or []
        return {
            "team_count": len(teams.get("value") or []),
            "chat_count": len(chat_items),
            "group_chat_count": sum(1 for chat in chat_items if chat.get("chatType") == "group"),
        }

    def has_activity(self, metrics: dict[str, Any]) -> bool:
        return metrics.get("team_count", 0) + metrics.get("chat_count", 0) > 0
