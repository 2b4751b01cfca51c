"""Base poller for vendor APIs that have no push delivery."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import FusionIngestorError, PersistenceError, UpstreamError
from ..models.base import as_utc, get_session_factory, session_scope
from ..models.integration import UserIntegration
from ..models.repository import (
    IngestionStateRepository,
    IntegrationEventCreate,
    IntegrationEventRepository,
    IntegrationRepository,
)
from ..monitoring.metrics import (
    observe_processing_duration,
    record_persistence_failure,
    record_poll_run,
    record_poll_tenant_error,
)
from ..utils.config import GlobalSettings
from ..utils.logging import log_poll_outcome, setup_logger

logger = setup_logger(__name__, context={"service_name": "pollers"})


class MissingCredentialsError(FusionIngestorError):
    """Raised when a tenant integration lacks the credentials a poller needs."""

    pass


class BasePoller(ABC):
    """
    Abstract base class for scheduled vendor pollers.

    A poll cycle walks every active integration of ``service_name``, honors the
    per-tenant cooldown stored in the ingestion state, calls the vendor API and
    stores at most one normalized event per tenant. A failure for one tenant is
    reported in the cycle result and never stops the others.
    """

    service_name: str = ""
    source: str = ""
    event_type: str = ""
    required_credentials: tuple[str, ...] = ("access_token",)

    def __init__(
        self,
        settings: GlobalSettings,
        session_factory: sessionmaker[Session] | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self._session_factory = session_factory
        self._transport = transport

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory or get_session_factory()

    @abstractmethod
    async def fetch_metrics(
        self,
        client: httpx.AsyncClient,
        integration: UserIntegration,
        credentials: dict[str, Any],
        *,
        now: datetime,
    ) -> dict[str, Any]:
        """Call the vendor API and summarize the tenant's activity."""
        pass

    @abstractmethod
    def has_activity(self, metrics: dict[str, Any]) -> bool:
        pass

    def build_event(
        self,
        integration: UserIntegration,
        metrics: dict[str, Any],
        *,
        now: datetime,
    ) -> IntegrationEventCreate | None:
        """Map a metrics summary to zero or one normalized event."""

        if not self.has_activity(metrics):
            return None
        return IntegrationEventCreate(
            user_id=integration.user_id,
            user_integration_id=integration.id,
            service_name=self.service_name,
            event_type=self.event_type,
            occurred_at=now,
            source=self.source,
            metadata=dict(metrics),
        )

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds,
            transport=self._transport,
        )

    async def request_json(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> Any:
        """Perform one request and decode JSON, mapping every failure to UpstreamError."""

        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"{self.service_name} request failed: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamError(
                f"{self.service_name} API returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"{self.service_name} API returned invalid JSON") from exc

    def _credentials_for(self, integration: UserIntegration) -> dict[str, Any]:
        credentials = dict(integration.credentials or {})
        if any(not credentials.get(key) for key in self.required_credentials):
            raise MissingCredentialsError(f"Missing credentials for user {integration.user_id}")
        return credentials

    def _load_integrations(self) -> list[UserIntegration]:
        try:
            with session_scope(self.session_factory) as session:
                return IntegrationRepository(session).list_active(self.service_name)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load {self.service_name} integrations: {exc}") from exc

    def _in_cooldown(self, integration: UserIntegration, now: datetime) -> bool:
        with session_scope(self.session_factory) as session:
            state = IngestionStateRepository(session).get(
                integration.user_id, integration.id, self.service_name
            )
            next_poll_after = as_utc(state.next_poll_after) if state else None
        return next_poll_after is not None and next_poll_after > now

    def _store(
        self,
        integration: UserIntegration,
        metrics: dict[str, Any],
        event: IntegrationEventCreate | None,
        now: datetime,
    ) -> None:
        try:
            with session_scope(self.session_factory) as session:
                if event is not None:
                    IntegrationEventRepository(session).create(event)
                IngestionStateRepository(session).upsert(
                    user_id=integration.user_id,
                    user_integration_id=integration.id,
                    service_name=self.service_name,
                    last_polled_at=now,
                    next_poll_after=now + timedelta(minutes=self.settings.poll_interval_minutes),
                    last_event_timestamp=event.occurred_at if event is not None else None,
                    metadata={"last_metrics": metrics},
                )
        except SQLAlchemyError as exc:
            record_persistence_failure("poll_state")
            raise PersistenceError(f"Failed to store poll result: {exc}") from exc

    async def run_cycle(self, *, now: datetime | None = None) -> dict[str, Any]:
        """Poll every active tenant once and summarize the cycle."""

        now = now or datetime.now(timezone.utc)
        started = time.perf_counter()
        integrations = self._load_integrations()

        processed = 0
        errors: list[str] = []

        async with self._build_client() as client:
            for integration in integrations:
                tenant_started = time.perf_counter()
                try:
                    if self._in_cooldown(integration, now):
                        log_poll_outcome(
                            logger,
                            user_id=integration.user_id,
                            service_name=self.service_name,
                            status="skipped",
                            reason="cooldown",
                        )
                        continue

                    credentials = self._credentials_for(integration)
                    metrics = await self.fetch_metrics(client, integration, credentials, now=now)
                    event = self.build_event(integration, metrics, now=now)
                    self._store(integration, metrics, event, now)
                except MissingCredentialsError as exc:
                    errors.append(str(exc))
                    record_poll_tenant_error(self.service_name, exc.__class__.__name__)
                    log_poll_outcome(
                        logger,
                        user_id=integration.user_id,
                        service_name=self.service_name,
                        status="error",
                        error=str(exc),
                    )
                    continue
                except FusionIngestorError as exc:
                    errors.append(f"Error for user {integration.user_id}: {exc}")
                    record_poll_tenant_error(self.service_name, exc.__class__.__name__)
                    log_poll_outcome(
                        logger,
                        user_id=integration.user_id,
                        service_name=self.service_name,
                        status="error",
                        duration_ms=int((time.perf_counter() - tenant_started) * 1000),
                        error=str(exc),
                    )
                    continue
                except Exception as exc:
                    errors.append(f"Error for user {integration.user_id}: {exc}")
                    record_poll_tenant_error(self.service_name, exc.__class__.__name__)
                    logger.exception(
                        "Unexpected error while polling tenant",
                        extra={
                            "user_id": integration.user_id,
                            "service_name": self.service_name,
                            "status": "error",
                        },
                    )
                    continue

                processed += 1
                log_poll_outcome(
                    logger,
                    user_id=integration.user_id,
                    service_name=self.service_name,
                    status="success",
                    duration_ms=int((time.perf_counter() - tenant_started) * 1000),
                    emitted_event=event is not None,
                )

        record_poll_run(self.service_name, "partial" if errors else "success")
        observe_processing_duration(f"poll_{self.service_name}", time.perf_counter() - started)

        result: dict[str, Any] = {
            "success": True,
            "processed": processed,
            "total": len(integrations),
        }
        if errors:
            result["errors"] = errors
        return result
