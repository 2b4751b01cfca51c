"""Dashboard status: global fusion score, system health and insight phase."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from statistics import fmean
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import PersistenceError
from ..models.base import as_utc, get_session_factory, session_scope
from ..models.fusion import FusionMetricRecord
from ..models.integration import UserIntegration
from ..models.repository import (
    FusionMetricRepository,
    IntegrationEventRepository,
    IntegrationRepository,
    ScoreHistoryRepository,
)
from ..scoring.learning import MODERATE_VARIANCE, LearningState
from ..scoring.phases import PhaseCounters, compute_phase
from ..utils.config import GlobalSettings
from .learning_service import LearningStateService

ACTIVE = "active"
OBSERVING = "observing"


def round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def _integration_keys(integration: UserIntegration) -> set[str]:
    keys = {integration.service_name.lower()}
    if integration.display_name:
        keys.add(integration.display_name.lower())
    return keys


def variance_stability_percent(states: Sequence[LearningState]) -> float:
    """Share of integrations with enough history whose recent variance is moderate or lower."""

    eligible = [state for state in states if state.snapshot_count >= 2]
    if not eligible:
        return 0.0
    stable = sum(1 for state in eligible if state.variance_current < MODERATE_VARIANCE)
    return round1(stable / len(eligible) * 100)


def stable_health_days(
    timestamps: Sequence[datetime],
    *,
    now: datetime,
    threshold: timedelta,
) -> int:
    """Days covered by the latest unbroken run of score updates.

    A run breaks wherever two consecutive updates are further apart than
    ``threshold``; the run only counts if its newest update is itself within
    ``threshold`` of ``now``.
    """
    if not timestamps:
        return 0
    ordered = sorted(timestamps)
    if now - ordered[-1] > threshold:
        return 0

    run_start = ordered[-1]
    for earlier, later in zip(reversed(ordered[:-1]), reversed(ordered[1:])):
        if later - earlier > threshold:
            break
        run_start = earlier
    return max(0, (now - run_start).days)


class SystemStatusService:
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

    def _metrics_state(
        self,
        integration: UserIntegration,
        records: dict[str, FusionMetricRecord],
        cutoff: datetime,
    ) -> str:
        for key in _integration_keys(integration):
            record = records.get(key)
            if record is not None and as_utc(record.updated_at) >= cutoff:
                return ACTIVE
        return OBSERVING

    def status(self, user_id: str, *, now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        threshold = timedelta(days=self.settings.active_threshold_days)
        cutoff = now - threshold

        try:
            with session_scope(self.session_factory) as session:
                integrations = IntegrationRepository(session).list_for_user(user_id)
                records = FusionMetricRepository(session).list_for_user(user_id)
                history = ScoreHistoryRepository(session).history_by_integration(user_id)
                poll_cycles = IntegrationEventRepository(session).count_by_source_suffix(
                    user_id, "_poll"
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load system status: {exc}") from exc

        states, _ = LearningStateService(self.settings, self.session_factory).derive(user_id)

        records_by_name = {record.integration_name.lower(): record for record in records}
        connected = [
            {
                "name": integration.display_name or integration.service_name,
                "service_name": integration.service_name,
                "metrics_state": self._metrics_state(integration, records_by_name, cutoff),
            }
            for integration in integrations
        ]
        active_count = sum(1 for item in connected if item["metrics_state"] == ACTIVE)

        has_metrics = bool(records)
        newest_update = max((as_utc(r.updated_at) for r in records), default=None)
        system_health = ACTIVE if newest_update is not None and newest_update >= cutoff else OBSERVING
        score_origin = "computed" if has_metrics and active_count > 0 else "baseline"

        if has_metrics:
            global_score = round1(fmean(record.fusion_score for record in records))
        else:
            global_score = round1(self.settings.baseline_score)

        first_added = min((as_utc(i.added_at) for i in integrations), default=None)
        history_times = [recorded_at for rows in history.values() for _, recorded_at in rows]

        counters = PhaseCounters(
            metrics_count=sum(state.metrics_count for state in states),
            active_integrations_count=active_count,
            days_since_first_integration=(now - first_added).days if first_added else 0,
            successful_poll_cycles=poll_cycles,
            fusion_score_recalculations=len(history_times),
            variance_stability_percent=variance_stability_percent(states),
            system_health_stable_days=(
                stable_health_days(history_times, now=now, threshold=threshold)
                if system_health == ACTIVE
                else 0
            ),
        )
        phase = compute_phase(counters)

        return {
            "success": True,
            "system_status": {
                "global_fusion_score": global_score,
                "score_origin": score_origin,
                "system_health": system_health,
                "has_efficiency_metrics": has_metrics,
                "connected_integrations": connected,
                "ai_insight_phase": phase.current_phase.value,
                "phase_metadata": phase.as_dict(),
            },
        }
