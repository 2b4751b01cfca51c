"""Slack Events API receiver."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..exceptions import SignatureVerificationError
from ..models.integration import UserIntegration
from ..models.repository import IntegrationEventCreate
from ..utils.logging import setup_logger
from .base import BaseWebhookReceiver, WebhookRequest
from .signatures import verify_slack_signature

logger = setup_logger(__name__, context={"service_name": "slack"})

SUPPORTED_EVENT_TYPES = frozenset(
    {
        "message",
        "reaction_added",
        "reaction_removed",
        "channel_created",
        "member_joined_channel",
        "member_left_channel",
        "app_mention",
        "file_shared",
    }
)

MAX_TEXT_LENGTH = 500


def _channel_id(event: dict[str, Any]) -> str | None:
    channel = event.get("channel")
    if isinstance(channel, dict):
        return channel.get("id")
    if channel is None:
        item = event.get("item")
        if isinstance(item, dict):
            return item.get("channel")
    return channel


def _event_time(value: Any, received_at: datetime) -> datetime:
    """Slack's ``event_time`` in epoch seconds; unusable values fall back to receipt time."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return received_at
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return received_at


class SlackEventsReceiver(BaseWebhookReceiver):
    """Receives Slack Events API deliveries signed with the app's signing secret."""

    service_name = "slack"
    source = "slack_events_api"

    def verify(self, request: WebhookRequest, *, now: float) -> None:
        secret = self.settings.slack_signing_secret
        if not secret:
            logger.warning("Slack signing secret not configured; skipping verification")
            return

        headers = {key.lower(): value for key, value in request.headers.items()}
        try:
            verify_slack_signature(
                secret,
                headers.get("x-slack-signature"),
                headers.get("x-slack-request-timestamp"),
                request.body,
                now=now,
                tolerance_seconds=self.settings.webhook_tolerance_seconds,
            )
        except SignatureVerificationError as exc:
            logger.warning("Rejected Slack delivery: %s", exc, extra={"status": "rejected"})
            raise

    def challenge(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        if payload.get("type") == "url_verification":
            return {"challenge": payload.get("challenge")}
        return None

    def skip_reason(self, payload: dict[str, Any]) -> str | None:
        if payload.get("type") != "event_callback":
            return "unsupported_payload"

        event = payload.get("event")
        if not isinstance(event, dict):
            return "missing_event"

        event_type = event.get("type")
        if not isinstance(event_type, str) or event_type not in SUPPORTED_EVENT_TYPES:
            return "unsupported_event"

        if event.get("bot_id") or event.get("subtype") == "bot_message":
            return "bot_message"
        return None

    def workspace_id(self, payload: dict[str, Any]) -> str | None:
        return payload.get("team_id")

    def external_event_id(self, payload: dict[str, Any]) -> str | None:
        return payload.get("event_id")

    def normalize(
        self,
        payload: dict[str, Any],
        integration: UserIntegration,
        *,
        received_at: datetime,
    ) -> IntegrationEventCreate:
        event: dict[str, Any] = payload["event"]
        event_type = event["type"]
        if event_type == "message":
            event_type = f"message.{event.get('channel_type') or 'channels'}"

        occurred_at = _event_time(payload.get("event_time"), received_at)

        text = event.get("text")
        item = event.get("item") if isinstance(event.get("item"), dict) else {}

        return IntegrationEventCreate(
            user_id=integration.user_id,
            user_integration_id=integration.id,
            service_name=self.service_name,
            event_type=event_type,
            occurred_at=occurred_at,
            source=self.source,
            external_event_id=payload.get("event_id"),
            metadata={
                "event_id": payload.get("event_id"),
                "team_id": payload.get("team_id"),
                "channel": _channel_id(event),
                "user": event.get("user"),
                "text": text[:MAX_TEXT_LENGTH] if isinstance(text, str) else None,
                "reaction": event.get("reaction"),
                "file_id": event.get("file_id"),
                "ts": event.get("ts") or item.get("ts"),
                "thread_ts": event.get("thread_ts"),
            },
        )
