"""Repository helpers for persistence models."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..exceptions import PersistenceError
from .base import as_utc, utcnow
from .fusion import (
    FusionAdaptiveReliability,
    FusionMetricRecord,
    FusionScoreHistory,
    IntegrationMetricSample,
)
from .integration import AutomationHook, IngestionState, IntegrationEvent, UserIntegration


def _dialect_insert(session: Session, table: Any) -> Any:
    """Return an INSERT construct supporting ``on_conflict_do_update`` for the bound dialect."""

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise PersistenceError(f"Upserts are not supported for the '{dialect}' dialect")
    return insert(table)


@dataclass(slots=True)
class IntegrationCreate:
    """Value object capturing the fields needed to connect an integration."""

    user_id: str
    service_name: str
    external_id: str | None = None
    display_name: str | None = None
    credentials: dict[str, Any] | None = None
    status: str = "active"


@dataclass(slots=True)
class IntegrationEventCreate:
    """Normalized event ready for persistence."""

    user_id: str
    service_name: str
    event_type: str
    occurred_at: datetime
    source: str
    metadata: dict[str, Any] = field(default_factory=dict)
    user_integration_id: int | None = None
    external_event_id: str | None = None


@dataclass(slots=True)
class AutomationHookCreate:
    """Pending follow-up action for an ingested event."""

    user_id: str
    event_type: str
    trigger_source: str
    action: dict[str, Any]
    metadata: dict[str, Any] | None = None


@dataclass(slots=True)
class MetricSampleCreate:
    """Raw metric sample as reported by a caller."""

    user_id: str
    integration_name: str
    success_count: int
    failure_count: int
    avg_response_time_ms: float
    data_quality_score: float
    uptime_percentage: float
    recorded_at: datetime


@dataclass(slots=True)
class FusionMetricUpsert:
    """Derived metrics for one (user, integration) pair."""

    user_id: str
    integration_name: str
    fusion_score: float
    efficiency_index: float
    trend_7d: float
    stability_confidence: float
    last_anomaly_at: datetime | None
    updated_at: datetime


class IntegrationRepository:
    """Data access helpers for :class:`UserIntegration`."""

    def __init__(self, session: Session):
        self._session = session

    def create(self, data: IntegrationCreate) -> UserIntegration:
        integration = UserIntegration(
            user_id=data.user_id,
            service_name=data.service_name,
            external_id=data.external_id,
            display_name=data.display_name,
            credentials=data.credentials,
            status=data.status,
        )
        self._session.add(integration)
        self._session.flush()
        return integration

    def find_active_by_external_id(
        self, service_name: str, external_id: str
    ) -> UserIntegration | None:
        """Return the active integration owning a vendor workspace, if any."""

        stmt = (
            select(UserIntegration)
            .where(
                UserIntegration.service_name == service_name,
                UserIntegration.external_id == external_id,
                UserIntegration.status == "active",
            )
            .order_by(UserIntegration.id)
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def list_active(self, service_name: str) -> list[UserIntegration]:
        stmt = (
            select(UserIntegration)
            .where(
                UserIntegration.service_name == service_name,
                UserIntegration.status == "active",
            )
            .order_by(UserIntegration.id)
        )
        return list(self._session.scalars(stmt))

    def list_for_user(self, user_id: str, *, status: str | None = "active") -> list[UserIntegration]:
        stmt = select(UserIntegration).where(UserIntegration.user_id == user_id)
        if status is not None:
            stmt = stmt.where(UserIntegration.status == status)
        return list(self._session.scalars(stmt.order_by(UserIntegration.added_at)))

    def touch_last_event(self, integration_id: int, *, at: datetime, event_id: str | None) -> None:
        self._session.execute(
            update(UserIntegration)
            .where(UserIntegration.id == integration_id)
            .values(last_event_at=at, last_event_id=event_id)
        )


class IntegrationEventRepository:
    """Data access helpers for :class:`IntegrationEvent`."""

    def __init__(self, session: Session):
        self._session = session

    def exists(self, service_name: str, external_event_id: str) -> bool:
        stmt = select(IntegrationEvent.id).where(
            IntegrationEvent.service_name == service_name,
            IntegrationEvent.external_event_id == external_event_id,
        )
        return self._session.execute(stmt.limit(1)).first() is not None

    def create(self, data: IntegrationEventCreate) -> IntegrationEvent:
        event = IntegrationEvent(
            user_id=data.user_id,
            user_integration_id=data.user_integration_id,
            service_name=data.service_name,
            event_type=data.event_type,
            occurred_at=data.occurred_at,
            source=data.source,
            external_event_id=data.external_event_id,
            event_metadata=data.metadata,
        )
        self._session.add(event)
        self._session.flush()
        return event

    def list_for_user(self, user_id: str) -> list[IntegrationEvent]:
        stmt = (
            select(IntegrationEvent)
            .where(IntegrationEvent.user_id == user_id)
            .order_by(IntegrationEvent.occurred_at)
        )
        return list(self._session.scalars(stmt))

    def count_by_source_suffix(self, user_id: str, suffix: str) -> int:
        stmt = select(func.count(IntegrationEvent.id)).where(
            IntegrationEvent.user_id == user_id,
            IntegrationEvent.source.like(f"%{suffix}"),
        )
        return int(self._session.scalar(stmt) or 0)


class AutomationHookRepository:
    """Data access helpers for :class:`AutomationHook`."""

    def __init__(self, session: Session):
        self._session = session

    def create(self, data: AutomationHookCreate) -> AutomationHook:
        hook = AutomationHook(
            user_id=data.user_id,
            event_type=data.event_type,
            trigger_source=data.trigger_source,
            action=data.action,
            status="pending",
            hook_metadata=data.metadata,
        )
        self._session.add(hook)
        self._session.flush()
        return hook

    def list_pending(self, user_id: str) -> list[AutomationHook]:
        stmt = select(AutomationHook).where(
            AutomationHook.user_id == user_id,
            AutomationHook.status == "pending",
        )
        return list(self._session.scalars(stmt.order_by(AutomationHook.id)))


class IngestionStateRepository:
    """Data access helpers for :class:`IngestionState`."""

    def __init__(self, session: Session):
        self._session = session

    def get(self, user_id: str, user_integration_id: int, service_name: str) -> IngestionState | None:
        stmt = select(IngestionState).where(
            IngestionState.user_id == user_id,
            IngestionState.user_integration_id == user_integration_id,
            IngestionState.service_name == service_name,
        )
        return self._session.scalars(stmt).first()

    def upsert(
        self,
        *,
        user_id: str,
        user_integration_id: int,
        service_name: str,
        last_polled_at: datetime,
        next_poll_after: datetime,
        last_event_timestamp: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        values = {
            "user_id": user_id,
            "user_integration_id": user_integration_id,
            "service_name": service_name,
            "last_polled_at": last_polled_at,
            "next_poll_after": next_poll_after,
            "metadata": metadata,
            "updated_at": last_polled_at,
        }
        update_values = {
            "last_polled_at": last_polled_at,
            "next_poll_after": next_poll_after,
            "metadata": metadata,
            "updated_at": last_polled_at,
        }
        if last_event_timestamp is not None:
            values["last_event_timestamp"] = last_event_timestamp
            update_values["last_event_timestamp"] = last_event_timestamp

        stmt = _dialect_insert(self._session, IngestionState.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "user_integration_id", "service_name"],
            set_=update_values,
        )
        self._session.execute(stmt)

    def count_polled_for_user(self, user_id: str) -> int:
        stmt = select(func.count(IngestionState.id)).where(
            IngestionState.user_id == user_id,
            IngestionState.last_polled_at.is_not(None),
        )
        return int(self._session.scalar(stmt) or 0)


class MetricSampleRepository:
    """Data access helpers for :class:`IntegrationMetricSample`."""

    def __init__(self, session: Session):
        self._session = session

    def append(self, data: MetricSampleCreate) -> IntegrationMetricSample:
        sample = IntegrationMetricSample(
            user_id=data.user_id,
            integration_name=data.integration_name,
            success_count=data.success_count,
            failure_count=data.failure_count,
            avg_response_time_ms=data.avg_response_time_ms,
            data_quality_score=data.data_quality_score,
            uptime_percentage=data.uptime_percentage,
            recorded_at=data.recorded_at,
        )
        self._session.add(sample)
        self._session.flush()
        return sample

    def timestamps_by_integration(self, user_id: str) -> dict[str, list[datetime]]:
        """Return sample timestamps per integration in chronological order."""

        stmt = (
            select(IntegrationMetricSample.integration_name, IntegrationMetricSample.recorded_at)
            .where(IntegrationMetricSample.user_id == user_id)
            .order_by(IntegrationMetricSample.recorded_at, IntegrationMetricSample.id)
        )
        grouped: dict[str, list[datetime]] = defaultdict(list)
        for name, recorded_at in self._session.execute(stmt):
            grouped[name].append(as_utc(recorded_at))
        return dict(grouped)


class FusionMetricRepository:
    """Data access helpers for :class:`FusionMetricRecord`."""

    def __init__(self, session: Session):
        self._session = session

    def upsert(self, data: FusionMetricUpsert) -> None:
        """Insert or replace the metric row for (user, integration) in one statement."""

        values = {
            "user_id": data.user_id,
            "integration_name": data.integration_name,
            "fusion_score": data.fusion_score,
            "efficiency_index": data.efficiency_index,
            "trend_7d": data.trend_7d,
            "stability_confidence": data.stability_confidence,
            "last_anomaly_at": data.last_anomaly_at,
            "updated_at": data.updated_at,
        }
        stmt = _dialect_insert(self._session, FusionMetricRecord.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "integration_name"],
            set_={key: value for key, value in values.items() if key not in ("user_id", "integration_name")},
        )
        self._session.execute(stmt)

    def get(self, user_id: str, integration_name: str) -> FusionMetricRecord | None:
        stmt = select(FusionMetricRecord).where(
            FusionMetricRecord.user_id == user_id,
            FusionMetricRecord.integration_name == integration_name,
        )
        return self._session.scalars(stmt).first()

    def list_for_user(self, user_id: str) -> list[FusionMetricRecord]:
        stmt = (
            select(FusionMetricRecord)
            .where(FusionMetricRecord.user_id == user_id)
            .order_by(FusionMetricRecord.integration_name)
        )
        return list(self._session.scalars(stmt))


class ScoreHistoryRepository:
    """Data access helpers for :class:`FusionScoreHistory`."""

    def __init__(self, session: Session):
        self._session = session

    def append(self, user_id: str, integration_name: str, score: float, recorded_at: datetime) -> None:
        self._session.add(
            FusionScoreHistory(
                user_id=user_id,
                integration_name=integration_name,
                fusion_score=score,
                recorded_at=recorded_at,
            )
        )
        self._session.flush()

    def recent_scores(self, user_id: str, integration_name: str, limit: int = 30) -> list[float]:
        """Return up to ``limit`` most recent scores, oldest first."""

        stmt = (
            select(FusionScoreHistory.fusion_score)
            .where(
                FusionScoreHistory.user_id == user_id,
                FusionScoreHistory.integration_name == integration_name,
            )
            .order_by(FusionScoreHistory.recorded_at.desc(), FusionScoreHistory.id.desc())
            .limit(limit)
        )
        scores = list(self._session.scalars(stmt))
        scores.reverse()
        return scores

    def history_by_integration(self, user_id: str) -> dict[str, list[tuple[float, datetime]]]:
        """Return the full score history per integration in chronological order."""

        stmt = (
            select(
                FusionScoreHistory.integration_name,
                FusionScoreHistory.fusion_score,
                FusionScoreHistory.recorded_at,
            )
            .where(FusionScoreHistory.user_id == user_id)
            .order_by(FusionScoreHistory.recorded_at, FusionScoreHistory.id)
        )
        grouped: dict[str, list[tuple[float, datetime]]] = defaultdict(list)
        for name, score, recorded_at in self._session.execute(stmt):
            grouped[name].append((score, as_utc(recorded_at)))
        return dict(grouped)

    def count_for_user(self, user_id: str) -> int:
        stmt = select(func.count(FusionScoreHistory.id)).where(
            FusionScoreHistory.user_id == user_id
        )
        return int(self._session.scalar(stmt) or 0)


class ReliabilityRepository:
    """Data access helpers for :class:`FusionAdaptiveReliability`."""

    def __init__(self, session: Session):
        self._session = session

    def upsert(
        self,
        *,
        channel: str,
        avg_latency_ms: int,
        failure_rate: float,
        recommended_retry_ms: int,
        confidence_score: float,
        last_updated: datetime | None = None,
    ) -> FusionAdaptiveReliability:
        values = {
            "channel": channel,
            "avg_latency_ms": avg_latency_ms,
            "failure_rate": failure_rate,
            "recommended_retry_ms": recommended_retry_ms,
            "confidence_score": confidence_score,
            "last_updated": last_updated or utcnow(),
        }
        stmt = _dialect_insert(self._session, FusionAdaptiveReliability.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["channel"],
            set_={key: value for key, value in values.items() if key != "channel"},
        )
        self._session.execute(stmt)
        self._session.expire_all()
        row = self._session.get(FusionAdaptiveReliability, channel)
        if row is None:
            raise PersistenceError(f"Reliability row for channel '{channel}' was not written")
        return row

    def list_all(self) -> list[FusionAdaptiveReliability]:
        stmt = select(FusionAdaptiveReliability).order_by(FusionAdaptiveReliability.channel)
        return list(self._session.scalars(stmt))
