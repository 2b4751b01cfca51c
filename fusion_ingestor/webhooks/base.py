"""Base webhook receiver shared by every vendor integration."""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import PersistenceError, ValidationError
from ..models.base import get_session_factory, session_scope
from ..models.integration import UserIntegration
from ..models.repository import (
    AutomationHookCreate,
    AutomationHookRepository,
    IntegrationEventCreate,
    IntegrationEventRepository,
    IntegrationRepository,
)
from ..monitoring.metrics import (
    observe_processing_duration,
    record_persistence_failure,
    record_webhook_delivery,
)
from ..utils.config import GlobalSettings
from ..utils.logging import log_webhook_outcome, setup_logger

logger = setup_logger(__name__, context={"service_name": "webhooks"})


@dataclass(slots=True)
class WebhookRequest:
    """Raw inbound delivery; the body must stay byte-exact for signature checks."""

    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class WebhookResult:
    status_code: int
    body: dict[str, Any]


class BaseWebhookReceiver(ABC):
    """
    Abstract receiver implementing the verify, parse, dedupe and persist pipeline.

    Subclasses supply the vendor specifics: how signatures are checked, what the
    handshake looks like, which payloads are skipped and how a payload maps to a
    normalized event.
    """

    service_name: str = ""
    source: str = ""

    def __init__(
        self,
        settings: GlobalSettings,
        session_factory: sessionmaker[Session] | None = None,
    ):
        self.settings = settings
        self._session_factory = session_factory

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory or get_session_factory()

    @abstractmethod
    def verify(self, request: WebhookRequest, *, now: float) -> None:
        """Raise SignatureVerificationError when the request is not authentic."""
        pass

    def challenge(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        """Return the handshake response body when ``payload`` is a URL challenge."""
        return None

    @abstractmethod
    def skip_reason(self, payload: dict[str, Any]) -> str | None:
        """Return why ``payload`` should be acknowledged without storing anything."""
        pass

    @abstractmethod
    def workspace_id(self, payload: dict[str, Any]) -> str | None:
        pass

    @abstractmethod
    def external_event_id(self, payload: dict[str, Any]) -> str | None:
        pass

    @abstractmethod
    def normalize(
        self,
        payload: dict[str, Any],
        integration: UserIntegration,
        *,
        received_at: datetime,
    ) -> IntegrationEventCreate:
        pass

    def automation_action(self, event: IntegrationEventCreate) -> dict[str, Any]:
        return {"type": "recalculate_fusion_score", "integration": self.service_name}

    def parse(self, body: bytes) -> dict[str, Any]:
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError(
                "Invalid JSON payload",
                errors=[{"loc": ["body"], "msg": str(exc)}],
            ) from exc
        if not isinstance(payload, dict):
            raise ValidationError(
                "Invalid JSON payload",
                errors=[{"loc": ["body"], "msg": "expected a JSON object"}],
            )
        return payload

    def handle(self, request: WebhookRequest, *, now: float | None = None) -> WebhookResult:
        """Run the full pipeline for one delivery.

        Signature and JSON failures raise; everything after the payload is
        accepted is acknowledged with 200 so the vendor does not redeliver.
        """
        started = time.perf_counter()
        current = time.time() if now is None else now

        self.verify(request, now=current)
        payload = self.parse(request.body)

        try:
            return self._dispatch(payload, current)
        except Exception:
            # A signed delivery must never trigger vendor redelivery, whatever its shape.
            logger.exception("Unhandled %s delivery", self.service_name, extra={"status": "error"})
            record_webhook_delivery(self.service_name, "error")
            return WebhookResult(200, {"ok": True, "stored": False})
        finally:
            observe_processing_duration(f"webhook_{self.service_name}", time.perf_counter() - started)

    def _dispatch(self, payload: dict[str, Any], current: float) -> WebhookResult:
        challenge = self.challenge(payload)
        if challenge is not None:
            record_webhook_delivery(self.service_name, "challenge")
            return WebhookResult(200, challenge)

        event_id = self.external_event_id(payload)

        reason = self.skip_reason(payload)
        if reason is not None:
            return self._acknowledge("skipped", event_id, reason=reason)

        workspace_id = self.workspace_id(payload)
        if not workspace_id or not isinstance(workspace_id, str):
            return self._acknowledge("skipped", event_id, reason="missing_workspace")

        received_at = datetime.fromtimestamp(current, tz=timezone.utc)
        try:
            outcome, user_id = self._persist(payload, workspace_id, event_id, received_at)
        except PersistenceError as exc:
            record_persistence_failure("webhook_event")
            log_webhook_outcome(
                logger,
                service_name=self.service_name,
                status="error",
                correlation_id=event_id,
                error=str(exc),
            )
            record_webhook_delivery(self.service_name, "persistence_error")
            return WebhookResult(200, {"ok": True, "stored": False})

        if outcome != "accepted":
            return self._acknowledge(outcome, event_id, user_id=user_id)

        log_webhook_outcome(
            logger,
            service_name=self.service_name,
            status="accepted",
            user_id=user_id,
            correlation_id=event_id,
        )
        record_webhook_delivery(self.service_name, "accepted")
        return WebhookResult(200, {"ok": True, "stored": True})

    def _acknowledge(
        self,
        outcome: str,
        event_id: str | None,
        *,
        reason: str | None = None,
        user_id: str | None = None,
    ) -> WebhookResult:
        log_webhook_outcome(
            logger,
            service_name=self.service_name,
            status=outcome,
            user_id=user_id,
            correlation_id=event_id,
            reason=reason or outcome,
        )
        record_webhook_delivery(self.service_name, outcome)
        return WebhookResult(200, {"ok": True, "stored": False})

    def _persist(
        self,
        payload: dict[str, Any],
        workspace_id: str,
        event_id: str | None,
        received_at: datetime,
    ) -> tuple[str, str | None]:
        """Store the event and its automation hook in one transaction."""

        try:
            with session_scope(self.session_factory) as session:
                integrations = IntegrationRepository(session)
                events = IntegrationEventRepository(session)

                integration = integrations.find_active_by_external_id(
                    self.service_name, workspace_id
                )
                if integration is None:
                    return "no_integration", None

                if event_id and events.exists(self.service_name, event_id):
                    return "duplicate", integration.user_id

                event = self.normalize(payload, integration, received_at=received_at)
                events.create(event)
                AutomationHookRepository(session).create(
                    AutomationHookCreate(
                        user_id=integration.user_id,
                        event_type=event.event_type,
                        trigger_source=self.source,
                        action=self.automation_action(event),
                        metadata={"external_event_id": event_id},
                    )
                )
                integrations.touch_last_event(
                    integration.id, at=event.occurred_at, event_id=event_id
                )
                return "accepted", integration.user_id
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to store {self.service_name} event: {exc}") from exc
