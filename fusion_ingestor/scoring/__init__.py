"""Pure scoring functions: fusion metrics, learning state and insight phases."""

from .fusion import FusionMetrics, MetricSample, calculate_fusion_metrics
from .learning import (
    LearningInputs,
    LearningState,
    ScoreSnapshot,
    derive_learning_state,
    generate_learning_events,
    recent_learning_events,
    summarize_learning,
)
from .phases import AIInsightPhase, PhaseCounters, compute_phase

__all__ = [
    "AIInsightPhase",
    "FusionMetrics",
    "LearningInputs",
    "LearningState",
    "MetricSample",
    "PhaseCounters",
    "ScoreSnapshot",
    "calculate_fusion_metrics",
    "compute_phase",
    "derive_learning_state",
    "generate_learning_events",
    "recent_learning_events",
    "summarize_learning",
]
