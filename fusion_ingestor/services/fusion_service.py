"""Batch scoring of integration metric samples."""

from __future__ import annotations

import time
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..models.base import get_session_factory, session_scope
from ..models.repository import (
    FusionMetricRepository,
    FusionMetricUpsert,
    MetricSampleCreate,
    MetricSampleRepository,
    ScoreHistoryRepository,
)
from ..monitoring.metrics import (
    observe_processing_duration,
    record_fusion_computation,
    record_persistence_failure,
)
from ..schemas.requests import MetricSampleInput
from ..scoring.fusion import FusionMetrics, MetricSample, calculate_fusion_metrics
from ..utils.config import GlobalSettings
from ..utils.logging import setup_logger

logger = setup_logger(__name__, context={"service_name": "fusion"})

HISTORY_LIMIT = 30


class FusionMetricsService:
    """Scores samples and records the sample, the metric row and the score history."""

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

    def _process_sample(
        self,
        session: Session,
        user_id: str,
        sample: MetricSample,
        now: datetime,
    ) -> FusionMetrics:
        history = ScoreHistoryRepository(session).recent_scores(
            user_id, sample.integration_name, limit=HISTORY_LIMIT
        )
        metrics = calculate_fusion_metrics(sample, history, now=now)

        MetricSampleRepository(session).append(
            MetricSampleCreate(
                user_id=user_id,
                integration_name=sample.integration_name,
                success_count=sample.success_count,
                failure_count=sample.failure_count,
                avg_response_time_ms=sample.avg_response_time_ms,
                data_quality_score=sample.data_quality_score,
                uptime_percentage=sample.uptime_percentage,
                recorded_at=now,
            )
        )
        FusionMetricRepository(session).upsert(
            FusionMetricUpsert(
                user_id=user_id,
                integration_name=sample.integration_name,
                fusion_score=metrics.fusion_score,
                efficiency_index=metrics.efficiency_index,
                trend_7d=metrics.trend_7d,
                stability_confidence=metrics.stability_confidence,
                last_anomaly_at=metrics.last_anomaly_at,
                updated_at=now,
            )
        )
        ScoreHistoryRepository(session).append(
            user_id, sample.integration_name, metrics.fusion_score, now
        )
        return metrics

    def process_batch(
        self,
        user_id: str,
        samples: Sequence[MetricSampleInput],
        *,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Score every sample; a storage failure for one sample does not stop the rest."""

        now = now or datetime.now(timezone.utc)
        started = time.perf_counter()
        results: list[dict[str, Any]] = []
        errors: list[dict[str, str]] = []

        for item in samples:
            sample = MetricSample(
                integration_name=item.integration_name,
                success_count=item.success_count,
                failure_count=item.failure_count,
                avg_response_time_ms=item.avg_response_time_ms,
                data_quality_score=item.data_quality_score,
                uptime_percentage=item.uptime_percentage,
            )
            try:
                with session_scope(self.session_factory) as session:
                    metrics = self._process_sample(session, user_id, sample, now)
            except SQLAlchemyError as exc:
                record_persistence_failure("fusion_metrics")
                record_fusion_computation("error")
                logger.error(
                    "Failed to store fusion metrics for %s: %s",
                    sample.integration_name,
                    exc,
                    extra={"user_id": user_id, "status": "error"},
                )
                errors.append(
                    {
                        "integration_name": sample.integration_name,
                        "error": "Failed to store fusion metrics",
                    }
                )
                continue

            anomalous = metrics.last_anomaly_at is not None
            record_fusion_computation("success", anomalous=anomalous)
            if anomalous:
                logger.warning(
                    "Anomaly detected for %s (score %.2f)",
                    sample.integration_name,
                    metrics.fusion_score,
                    extra={"user_id": user_id, "status": "anomaly"},
                )
            results.append(metrics.as_dict())

        duration = time.perf_counter() - started
        observe_processing_duration("fusion_batch", duration)
        logger.info(
            "Scored %d of %d samples",
            len(results),
            len(samples),
            extra={
                "user_id": user_id,
                "status": "partial" if errors else "success",
                "duration_ms": int(duration * 1000),
            },
        )

        response: dict[str, Any] = {
            "success": True,
            "metrics": results,
            "calculated_at": now.isoformat(),
        }
        if errors:
            response["errors"] = errors
        return response
