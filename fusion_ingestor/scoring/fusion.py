"""Fusion metric calculations.

Every function here is pure: results depend only on the sample, the prior
score history for the same (user, integration) pair and, for the anomaly
flag, the ``now`` timestamp supplied by the caller.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from statistics import fmean, pstdev

SUCCESS_WEIGHT = 0.4
QUALITY_WEIGHT = 0.3
UPTIME_WEIGHT = 0.3

TREND_WINDOW = 7
STABILITY_WINDOW = 7
ANOMALY_WINDOW = 3

SLOW_RESPONSE_MS = 2000
ANOMALY_RESPONSE_MS = 5000
STABLE_UPTIME_PCT = 95
ANOMALY_UPTIME_PCT = 90
ANOMALY_SUCCESS_RATE = 0.5
ANOMALY_SCORE_DROP_RATIO = 0.7
VOLATILE_STDDEV = 15


@dataclass(frozen=True, slots=True)
class MetricSample:
    """One operational sample for an integration."""

    integration_name: str
    success_count: int
    failure_count: int
    avg_response_time_ms: float
    data_quality_score: float
    uptime_percentage: float

    @property
    def total_requests(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        """Fraction of successful requests in [0, 1]; 0 when nothing was recorded."""

        total = self.total_requests
        if total <= 0:
            return 0.0
        return self.success_count / total


@dataclass(frozen=True, slots=True)
class FusionMetrics:
    """Derived metrics for one sample."""

    integration_name: str
    fusion_score: float
    efficiency_index: float
    stability_confidence: float
    trend_7d: float
    last_anomaly_at: datetime | None

    def as_dict(self) -> dict[str, object]:
        return {
            "integration_name": self.integration_name,
            "fusion_score": self.fusion_score,
            "efficiency_index": self.efficiency_index,
            "stability_confidence": self.stability_confidence,
            "trend_7d": self.trend_7d,
            "last_anomaly_at": self.last_anomaly_at.isoformat() if self.last_anomaly_at else None,
        }


def round2(value: float) -> float:
    """Round half-up to two decimals."""

    return math.floor(value * 100 + 0.5) / 100


def clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    return max(lower, min(upper, value))


def fusion_score(sample: MetricSample) -> float:
    """Weighted blend of success rate, data quality and uptime on a 0-100 scale."""

    raw = (
        SUCCESS_WEIGHT * sample.success_rate * 100
        + QUALITY_WEIGHT * sample.data_quality_score
        + UPTIME_WEIGHT * sample.uptime_percentage
    )
    return round2(clamp(raw))


def efficiency_index(sample: MetricSample) -> float:
    """Success rate per second of response time, capped at 100."""

    if sample.total_requests <= 0:
        return 0.0
    ratio = sample.success_rate * 1000 / max(sample.avg_response_time_ms, 1)
    return round2(clamp(ratio * 100))


def stability_confidence(sample: MetricSample, history: Sequence[float]) -> float:
    confidence = sample.success_rate * 100
    if sample.avg_response_time_ms > SLOW_RESPONSE_MS:
        confidence *= 0.9
    if sample.uptime_percentage < STABLE_UPTIME_PCT:
        confidence *= 0.85

    window = list(history[-STABILITY_WINDOW:])
    if len(window) >= 2 and pstdev(window) > VOLATILE_STDDEV:
        confidence *= 0.8

    return round2(clamp(confidence))


def trend_7d(history: Sequence[float]) -> float:
    """Percent change between the oldest and newest of the last seven scores."""

    window = list(history[-TREND_WINDOW:])
    if len(window) < 2:
        return 0.0
    oldest, newest = window[0], window[-1]
    if oldest == 0:
        return 0.0
    return round2((newest - oldest) / oldest * 100)


def is_anomalous(sample: MetricSample, score: float, history: Sequence[float]) -> bool:
    if sample.success_rate < ANOMALY_SUCCESS_RATE:
        return True
    if sample.avg_response_time_ms > ANOMALY_RESPONSE_MS:
        return True
    if sample.uptime_percentage < ANOMALY_UPTIME_PCT:
        return True

    recent = list(history[-ANOMALY_WINDOW:])
    if recent and score < ANOMALY_SCORE_DROP_RATIO * fmean(recent):
        return True
    return False


def calculate_fusion_metrics(
    sample: MetricSample,
    history: Sequence[float],
    *,
    now: datetime,
) -> FusionMetrics:
    """Compute all derived metrics for ``sample``.

    Args:
        sample: The sample being scored.
        history: Prior fusion scores for the same pair, oldest first, not
            including the score for ``sample``.
        now: Timestamp recorded as ``last_anomaly_at`` when the sample is anomalous.
    """
    score = fusion_score(sample)
    return FusionMetrics(
        integration_name=sample.integration_name,
        fusion_score=score,
        efficiency_index=efficiency_index(sample),
        stability_confidence=stability_confidence(sample, history),
        trend_7d=trend_7d(history),
        last_anomaly_at=now if is_anomalous(sample, score, history) else None,
    )
