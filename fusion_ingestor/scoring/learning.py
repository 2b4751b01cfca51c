"""Display-only learning state derived from stored fusion score history.

Nothing here is persisted. Every value is recomputed from the score history
and metric sample timestamps on each request, so identical inputs always
produce identical states and events.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from statistics import fmean, pstdev

from .fusion import round2

RECENT_WINDOW = 7
CONFIDENCE_WINDOW_DAYS = 30
LOW_VARIANCE = 5
MODERATE_VARIANCE = 15
VARIANCE_DROP_RATIO = 0.7
VARIANCE_RISE_RATIO = 1.3
SUPPRESSION_STDDEVS = 2


class MaturityStage(str, Enum):
    OBSERVE = "observe"
    ANALYZE = "analyze"
    PREDICT = "predict"


class VarianceTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class LearningVelocity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LearningEventType(str, Enum):
    BASELINE_ESTABLISHED = "BASELINE_ESTABLISHED"
    CONFIDENCE_INCREASED = "CONFIDENCE_INCREASED"
    CONFIDENCE_DECREASED = "CONFIDENCE_DECREASED"
    VARIANCE_STABILIZED = "VARIANCE_STABILIZED"
    MATURITY_PROMOTED = "MATURITY_PROMOTED"


_STAGE_RANK = {MaturityStage.OBSERVE: 0, MaturityStage.ANALYZE: 1, MaturityStage.PREDICT: 2}
_STAGE_READINESS = {
    MaturityStage.ANALYZE: "analysis readiness",
    MaturityStage.PREDICT: "prediction readiness",
}


@dataclass(frozen=True, slots=True)
class ScoreSnapshot:
    score: float
    recorded_at: datetime


@dataclass(frozen=True, slots=True)
class LearningInputs:
    """History of one integration: score snapshots and metric sample times, oldest first."""

    integration_name: str
    snapshots: tuple[ScoreSnapshot, ...] = ()
    metric_timestamps: tuple[datetime, ...] = ()

    @property
    def scores(self) -> list[float]:
        return [snapshot.score for snapshot in self.snapshots]


@dataclass(frozen=True, slots=True)
class LearningEvent:
    id: str
    event_type: LearningEventType
    occurred_at: datetime
    explanation: str
    integration_name: str

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "event_type": self.event_type.value,
            "occurred_at": self.occurred_at.isoformat(),
            "explanation": self.explanation,
            "integration_name": self.integration_name,
        }


@dataclass(frozen=True, slots=True)
class LearningState:
    integration_name: str
    baseline_established_at: datetime | None
    snapshot_count: int
    metrics_count: int
    confidence_current: float
    confidence_delta_30: float
    variance_current: float
    variance_trend: VarianceTrend
    maturity_stage: MaturityStage
    learning_velocity: LearningVelocity
    last_promotion_event: datetime | None
    suppression_events_count: int

    def as_dict(self) -> dict[str, object]:
        return {
            "integration_name": self.integration_name,
            "baseline_established_at": _iso(self.baseline_established_at),
            "snapshot_count": self.snapshot_count,
            "metrics_count": self.metrics_count,
            "confidence_current": self.confidence_current,
            "confidence_delta_30": self.confidence_delta_30,
            "variance_current": self.variance_current,
            "variance_trend": self.variance_trend.value,
            "maturity_stage": self.maturity_stage.value,
            "learning_velocity": self.learning_velocity.value,
            "last_promotion_event": _iso(self.last_promotion_event),
            "suppression_events_count": self.suppression_events_count,
        }


@dataclass(frozen=True, slots=True)
class LearningEventPage:
    events: list[LearningEvent]
    total: int
    has_more: bool

    def as_dict(self) -> dict[str, object]:
        return {
            "events": [event.as_dict() for event in self.events],
            "total": self.total,
            "has_more": self.has_more,
        }


@dataclass(frozen=True, slots=True)
class GlobalLearningSummary:
    total_integrations: int
    integrations_with_baseline: int
    total_snapshot_count: int
    average_confidence: float
    overall_maturity_stage: MaturityStage
    learning_in_progress: bool
    confidence_explanation: str
    stage_counts: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return {
            "total_integrations": self.total_integrations,
            "integrations_with_baseline": self.integrations_with_baseline,
            "total_snapshot_count": self.total_snapshot_count,
            "average_confidence": self.average_confidence,
            "overall_maturity_stage": self.overall_maturity_stage.value,
            "learning_in_progress": self.learning_in_progress,
            "confidence_explanation": self.confidence_explanation,
            "stage_counts": dict(self.stage_counts),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def population_variance(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    return pstdev(values) ** 2


def derive_confidence(
    snapshot_count: int,
    metrics_count: int,
    variance: float,
    has_score: bool,
) -> float:
    """Bucketed confidence in [0, 1].

    Non-decreasing in ``snapshot_count`` and ``metrics_count``, non-increasing
    in ``variance``.
    """
    confidence = 0.0

    if snapshot_count >= 14:
        confidence += 0.3
    elif snapshot_count >= 7:
        confidence += 0.2
    elif snapshot_count >= 3:
        confidence += 0.1

    if metrics_count >= 20:
        confidence += 0.3
    elif metrics_count >= 10:
        confidence += 0.2
    elif metrics_count >= 3:
        confidence += 0.1

    if variance < LOW_VARIANCE:
        confidence += 0.2
    elif variance < MODERATE_VARIANCE:
        confidence += 0.1

    if has_score:
        confidence += 0.2

    return round2(min(1.0, confidence))


def variance_trend(recent: float, older: float | None) -> VarianceTrend:
    if older is None or older <= 0:
        return VarianceTrend.STABLE
    if recent < VARIANCE_DROP_RATIO * older:
        return VarianceTrend.DECREASING
    if recent > VARIANCE_RISE_RATIO * older:
        return VarianceTrend.INCREASING
    return VarianceTrend.STABLE


def maturity_stage(snapshot_count: int, metrics_count: int) -> MaturityStage:
    # The observe rule wins over everything else.
    if snapshot_count < 5 or metrics_count < 3:
        return MaturityStage.OBSERVE
    if snapshot_count >= 15 and metrics_count >= 5:
        return MaturityStage.PREDICT
    return MaturityStage.ANALYZE


def learning_velocity(timestamps: Sequence[datetime]) -> LearningVelocity:
    """Classify how quickly snapshots arrive from the mean gap between them."""

    if len(timestamps) < 2:
        return LearningVelocity.LOW

    gaps = [
        (later - earlier).total_seconds()
        for earlier, later in zip(timestamps, timestamps[1:])
    ]
    mean_gap_days = fmean(gaps) / 86400
    if mean_gap_days < 2:
        return LearningVelocity.HIGH
    if mean_gap_days > 7:
        return LearningVelocity.LOW
    return LearningVelocity.MEDIUM


def suppression_count(scores: Sequence[float]) -> int:
    """Number of scores lying more than two standard deviations from the mean."""

    if len(scores) < 2:
        return 0
    deviation = pstdev(scores)
    if deviation == 0:
        return 0
    mean = fmean(scores)
    return sum(1 for score in scores if abs(score - mean) > SUPPRESSION_STDDEVS * deviation)


def _metrics_counts_at_snapshots(inputs: LearningInputs) -> list[int]:
    """Metric samples recorded at or before each snapshot, via a single merge pass."""

    counts: list[int] = []
    timestamps = inputs.metric_timestamps
    cursor = 0
    for snapshot in inputs.snapshots:
        while cursor < len(timestamps) and timestamps[cursor] <= snapshot.recorded_at:
            cursor += 1
        counts.append(cursor)
    return counts


def _confidence_delta_30(inputs: LearningInputs) -> float:
    if not inputs.snapshots:
        return 0.0

    cutoff = inputs.snapshots[-1].recorded_at - timedelta(days=CONFIDENCE_WINDOW_DAYS)
    older = [s for s in inputs.snapshots if s.recorded_at < cutoff]
    recent = [s for s in inputs.snapshots if s.recorded_at >= cutoff]
    if not older or not recent:
        return 0.0

    older_metrics = sum(1 for ts in inputs.metric_timestamps if ts < cutoff)
    recent_metrics = len(inputs.metric_timestamps) - older_metrics

    older_confidence = derive_confidence(
        len(older),
        older_metrics,
        population_variance([s.score for s in older][-RECENT_WINDOW:]),
        True,
    )
    recent_confidence = derive_confidence(
        len(recent),
        recent_metrics,
        population_variance([s.score for s in recent][-RECENT_WINDOW:]),
        True,
    )
    return round2(recent_confidence - older_confidence)


def generate_learning_events(inputs: LearningInputs) -> list[LearningEvent]:
    """Scan the history once, oldest first, and emit learning events in order."""

    name = inputs.integration_name
    scores = inputs.scores
    metric_counts = _metrics_counts_at_snapshots(inputs)
    events: list[LearningEvent] = []

    def emit(index: int, event_type: LearningEventType, explanation: str) -> None:
        events.append(
            LearningEvent(
                id=f"{name}:{event_type.value.lower()}:{index}",
                event_type=event_type,
                occurred_at=inputs.snapshots[index].recorded_at,
                explanation=explanation,
                integration_name=name,
            )
        )

    previous_stage: MaturityStage | None = None
    previous_variance: float | None = None

    for index in range(len(scores)):
        window = scores[max(0, index - RECENT_WINDOW + 1) : index + 1]
        current_variance = population_variance(window)
        stage = maturity_stage(index + 1, metric_counts[index])

        if index == 0:
            emit(
                index,
                LearningEventType.BASELINE_ESTABLISHED,
                f"Baseline established for {name} after {max(metric_counts[index], 1)} observations.",
            )
        elif previous_stage is not None and _STAGE_RANK[stage] > _STAGE_RANK[previous_stage]:
            emit(
                index,
                LearningEventType.MATURITY_PROMOTED,
                f"{name} reached {_STAGE_READINESS[stage]} after stability window met.",
            )

        # A variance transition needs two windows with at least two points each.
        if index >= 2 and previous_variance is not None:
            if previous_variance >= LOW_VARIANCE and current_variance < LOW_VARIANCE:
                emit(
                    index,
                    LearningEventType.VARIANCE_STABILIZED,
                    f"Variance stabilized for {name}. Patterns are now consistent.",
                )
            if previous_variance > 0:
                if current_variance < VARIANCE_DROP_RATIO * previous_variance:
                    emit(
                        index,
                        LearningEventType.CONFIDENCE_INCREASED,
                        f"Confidence increased for {name} as variance declined from "
                        f"{previous_variance:.1f} to {current_variance:.1f}.",
                    )
                elif current_variance > VARIANCE_RISE_RATIO * previous_variance:
                    emit(
                        index,
                        LearningEventType.CONFIDENCE_DECREASED,
                        f"Confidence decreased for {name} as variance rose from "
                        f"{previous_variance:.1f} to {current_variance:.1f}.",
                    )

        previous_stage = stage
        previous_variance = current_variance

    return events


def derive_learning_state(
    inputs: LearningInputs,
    events: Sequence[LearningEvent] | None = None,
) -> LearningState:
    """Derive the learning state for one integration."""

    if events is None:
        events = generate_learning_events(inputs)

    scores = inputs.scores
    snapshot_count = len(scores)
    metrics_count = len(inputs.metric_timestamps)

    recent_scores = scores[-RECENT_WINDOW:]
    older_scores = scores[:-RECENT_WINDOW] if snapshot_count > RECENT_WINDOW else []
    variance_current = population_variance(recent_scores)
    variance_older = population_variance(older_scores) if len(older_scores) >= 2 else None

    promotions = [e for e in events if e.event_type is LearningEventType.MATURITY_PROMOTED]

    return LearningState(
        integration_name=inputs.integration_name,
        baseline_established_at=inputs.snapshots[0].recorded_at if inputs.snapshots else None,
        snapshot_count=snapshot_count,
        metrics_count=metrics_count,
        confidence_current=derive_confidence(
            snapshot_count, metrics_count, variance_current, snapshot_count > 0
        ),
        confidence_delta_30=_confidence_delta_30(inputs),
        variance_current=round2(variance_current),
        variance_trend=variance_trend(variance_current, variance_older),
        maturity_stage=maturity_stage(snapshot_count, metrics_count),
        learning_velocity=learning_velocity([s.recorded_at for s in inputs.snapshots]),
        last_promotion_event=promotions[-1].occurred_at if promotions else None,
        suppression_events_count=suppression_count(scores),
    )


def recent_learning_events(events: Sequence[LearningEvent], limit: int = 10) -> LearningEventPage:
    """Newest ``limit`` events, newest first, with the total and an overflow flag."""

    ordered = sorted(events, key=lambda event: (event.occurred_at, event.id), reverse=True)
    return LearningEventPage(
        events=ordered[:limit],
        total=len(ordered),
        has_more=len(ordered) > limit,
    )


def _confidence_explanation(
    average_confidence: float,
    total: int,
    with_baseline: int,
    total_snapshots: int,
) -> str:
    if total == 0:
        return "No integrations connected. Connect integrations to begin system learning."
    if average_confidence >= 0.7:
        return (
            f"Confidence is high: {with_baseline} of {total} integrations have established "
            "baselines with consistent patterns."
        )
    if average_confidence >= 0.4:
        return (
            f"Confidence is building as {total_snapshots} observations accumulate "
            f"across {total} integrations."
        )
    return "Establishing baselines. More observations are needed before patterns are reliable."


def summarize_learning(states: Sequence[LearningState]) -> GlobalLearningSummary:
    """Roll per-integration states up into one system-wide summary."""

    total = len(states)
    with_baseline = sum(1 for state in states if state.baseline_established_at is not None)
    total_snapshots = sum(state.snapshot_count for state in states)
    average = round2(fmean(state.confidence_current for state in states)) if states else 0.0

    stage_counts = Counter(state.maturity_stage for state in states)
    if stage_counts:
        # Majority wins; ties go to the less mature stage.
        overall = max(stage_counts, key=lambda stage: (stage_counts[stage], -_STAGE_RANK[stage]))
    else:
        overall = MaturityStage.OBSERVE

    return GlobalLearningSummary(
        total_integrations=total,
        integrations_with_baseline=with_baseline,
        total_snapshot_count=total_snapshots,
        average_confidence=average,
        overall_maturity_stage=overall,
        learning_in_progress=any(state.maturity_stage is not MaturityStage.PREDICT for state in states),
        confidence_explanation=_confidence_explanation(average, total, with_baseline, total_snapshots),
        stage_counts={stage.value: stage_counts.get(stage, 0) for stage in MaturityStage},
    )
