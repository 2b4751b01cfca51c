"""Monday.com GraphQL poller."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import httpx

from ..exceptions import UpstreamError
from ..models.base import as_utc
from ..models.integration import UserIntegration
from .base import BasePoller

BOARDS_QUERY = "query { boards(limit: 50) { id updated_at items_count } }"
RECENT_ACTIVITY_WINDOW = timedelta(hours=24)


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


class MondayPoller(BasePoller):
    service_name = "monday"
    source = "monday_api_poll"
    event_type = "monday.board_activity"
    required_credentials = ("api_key",)

    async def fetch_metrics(
        self,
        client: httpx.AsyncClient,
        integration: UserIntegration,
        credentials: dict[str, Any],
        *,
        now: datetime,
    ) -> dict[str, Any]:
        data = await self.request_json(
            client,
            "POST",
            self.settings.monday_api_url,
            headers={
                "Authorization": credentials["api_key"],
                "Content-Type": "application/json",
            },
            json={"query": BOARDS_QUERY},
        )
        if data.get("errors"):
            message = data["errors"][0].get("message", "unknown error")
            raise UpstreamError(f"Monday GraphQL error: {message}")

        boards = (data.get("data") or {}).get("boards") or []
        recently_updated = 0
        for board in boards:
            updated_at = _parse_timestamp(board.get("updated_at"))
            if updated_at is not None and now - updated_at <= RECENT_ACTIVITY_WINDOW:
                recently_updated += 1

        return {
            "board_count": len(boards),
            "total_items": sum(int(board.get("items_count") or 0) for board in boards),
            "recently_updated_boards": recently_updated,
        }

    def has_activity(self, metrics: dict[str, Any]) -> bool:
        return metrics.get("board_count", 0) > 0
