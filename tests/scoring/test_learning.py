"""Tests for learning state derivation and learning event generation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from fusion_ingestor.scoring.learning import (
    LearningEventType,
    LearningInputs,
    LearningVelocity,
    MaturityStage,
    ScoreSnapshot,
    VarianceTrend,
    derive_confidence,
    derive_learning_state,
    generate_learning_events,
    learning_velocity,
    maturity_stage,
    recent_learning_events,
    summarize_learning,
    suppression_count,
    variance_trend,
)

START = datetime(2026, 9, 1, tzinfo=timezone.utc)


def _inputs(
    scores: list[float],
    *,
    name: str = "crm",
    gap: timedelta = timedelta(days=1),
    metrics: int | None = None,
) -> LearningInputs:
    snapshots = tuple(
        ScoreSnapshot(score=score, recorded_at=START + gap * index)
        for index, score in enumerate(scores)
    )
    metric_count = len(scores) if metrics is None else metrics
    timestamps = tuple(START + gap * index for index in range(metric_count))
    return LearningInputs(integration_name=name, snapshots=snapshots, metric_timestamps=timestamps)


@pytest.mark.parametrize(
    ("snapshots", "metrics", "expected"),
    [
        (3, 2, MaturityStage.OBSERVE),
        (4, 100, MaturityStage.OBSERVE),
        (100, 2, MaturityStage.OBSERVE),
        (5, 3, MaturityStage.ANALYZE),
        (14, 10, MaturityStage.ANALYZE),
        (15, 4, MaturityStage.ANALYZE),
        (15, 5, MaturityStage.PREDICT),
        (16, 6, MaturityStage.PREDICT),
    ],
)
def test_maturity_stage_boundaries(snapshots: int, metrics: int, expected: MaturityStage) -> None:
    assert maturity_stage(snapshots, metrics) is expected


def test_confidence_is_monotonic() -> None:
    for variance in (0.0, 7.0, 40.0):
        previous = -1.0
        for count in range(0, 30):
            value = derive_confidence(count, count, variance, True)
            assert 0.0 <= value <= 1.0
            assert value >= previous
            previous = value

    for count in (0, 5, 20):
        values = [derive_confidence(count, count, variance, True) for variance in (0, 4.9, 5, 14.9, 15, 100)]
        assert values == sorted(values, reverse=True)


def test_confidence_caps_at_one() -> None:
    assert derive_confidence(50, 50, 0.0, True) == 1.0
    assert derive_confidence(0, 0, 100.0, False) == 0.0


@pytest.mark.parametrize(
    ("gap", "expected"),
    [
        (timedelta(hours=12), LearningVelocity.HIGH),
        (timedelta(days=2), LearningVelocity.MEDIUM),
        (timedelta(days=7), LearningVelocity.MEDIUM),
        (timedelta(days=10), LearningVelocity.LOW),
    ],
)
def test_learning_velocity(gap: timedelta, expected: LearningVelocity) -> None:
    timestamps = [START + gap * index for index in range(4)]

    assert learning_velocity(timestamps) is expected


def test_learning_velocity_needs_two_snapshots() -> None:
    assert learning_velocity([START]) is LearningVelocity.LOW


def test_suppression_counts_outliers() -> None:
    assert suppression_count([60.0] * 10) == 0
    assert suppression_count([60.0] * 20 + [5.0]) == 1


def test_steady_history_emits_baseline_and_promotions() -> None:
    inputs = _inputs([80.0] * 16)

    events = generate_learning_events(inputs)

    assert [event.id for event in events] == [
        "crm:baseline_established:0",
        "crm:maturity_promoted:4",
        "crm:maturity_promoted:14",
    ]
    assert events[1].occurred_at == START + timedelta(days=4)
    assert "analysis readiness" in events[1].explanation
    assert "prediction readiness" in events[2].explanation


def test_learning_state_for_steady_history() -> None:
    inputs = _inputs([80.0] * 16)

    state = derive_learning_state(inputs)

    assert state.snapshot_count == 16
    assert state.metrics_count == 16
    assert state.maturity_stage is MaturityStage.PREDICT
    assert state.confidence_current == 0.9
    assert state.variance_current == 0.0
    assert state.variance_trend is VarianceTrend.STABLE
    assert state.learning_velocity is LearningVelocity.HIGH
    assert state.baseline_established_at == START
    assert state.last_promotion_event == START + timedelta(days=14)
    assert state.suppression_events_count == 0


def test_empty_history_yields_observe_state() -> None:
    state = derive_learning_state(LearningInputs(integration_name="crm"))

    assert state.snapshot_count == 0
    assert state.maturity_stage is MaturityStage.OBSERVE
    assert state.baseline_established_at is None
    assert state.confidence_current == 0.2
    assert state.as_dict()["last_promotion_event"] is None


def test_variance_stabilization_events() -> None:
    inputs = _inputs([50.0, 70.0, 50.0, 70.0, 60.0, 60.0, 60.0, 60.0, 60.0, 60.0, 60.0])

    events = generate_learning_events(inputs)
    by_type = {event_type: [e for e in events if e.event_type is event_type] for event_type in LearningEventType}

    assert [e.id for e in by_type[LearningEventType.VARIANCE_STABILIZED]] == ["crm:variance_stabilized:10"]
    assert by_type[LearningEventType.CONFIDENCE_INCREASED]
    assert not by_type[LearningEventType.CONFIDENCE_DECREASED]
    assert [e.occurred_at for e in events] == sorted(e.occurred_at for e in events)


def test_rising_variance_emits_confidence_decrease() -> None:
    inputs = _inputs([60.0, 61.0, 60.0, 90.0])

    events = generate_learning_events(inputs)

    assert "crm:confidence_decreased:3" in [event.id for event in events]


def test_derivation_is_deterministic() -> None:
    inputs = _inputs([55.0, 72.0, 61.0, 80.0, 44.0, 67.0, 90.0, 58.0], gap=timedelta(days=3))

    assert derive_learning_state(inputs) == derive_learning_state(inputs)
    assert generate_learning_events(inputs) == generate_learning_events(inputs)


def test_confidence_delta_compares_windows() -> None:
    recent_only = _inputs([80.0] * 10)
    spread = _inputs([80.0] * 20, gap=timedelta(days=4), metrics=20)

    assert derive_learning_state(recent_only).confidence_delta_30 == 0.0
    assert derive_learning_state(spread).confidence_delta_30 != 0.0


def test_recent_learning_events_pages_newest_first() -> None:
    events = generate_learning_events(_inputs([80.0] * 16))

    page = recent_learning_events(events, limit=2)

    assert page.total == 3
    assert page.has_more is True
    assert [event.id for event in page.events] == [
        "crm:maturity_promoted:14",
        "crm:maturity_promoted:4",
    ]


def test_summary_breaks_ties_towards_less_mature_stage() -> None:
    observe = derive_learning_state(_inputs([80.0] * 2, name="a"))
    predict = derive_learning_state(_inputs([80.0] * 16, name="b"))

    summary = summarize_learning([observe, predict])

    assert summary.overall_maturity_stage is MaturityStage.OBSERVE
    assert summary.total_integrations == 2
    assert summary.integrations_with_baseline == 2
    assert summary.total_snapshot_count == 18
    assert summary.learning_in_progress is True
    assert summary.stage_counts == {"observe": 1, "analyze": 0, "predict": 1}


def test_summary_without_integrations() -> None:
    summary = summarize_learning([])

    assert summary.total_integrations == 0
    assert summary.average_confidence == 0.0
    assert summary.overall_maturity_stage is MaturityStage.OBSERVE
    assert summary.learning_in_progress is False
    assert summary.confidence_explanation.startswith("No integrations connected")


@pytest.mark.parametrize(
    ("recent", "older", "expected"),
    [
        (6.9, 10.0, VarianceTrend.DECREASING),
        (0.0, 10.0, VarianceTrend.DECREASING),
        (0.7 * 10.0, 10.0, VarianceTrend.STABLE),
        (10.0, 10.0, VarianceTrend.STABLE),
        (1.3 * 10.0, 10.0, VarianceTrend.STABLE),
        (13.1, 10.0, VarianceTrend.INCREASING),
        (50.0, 0.0, VarianceTrend.STABLE),
        (50.0, None, VarianceTrend.STABLE),
    ],
)
def test_variance_trend_thresholds(recent: float, older: float | None, expected: VarianceTrend) -> None:
    assert variance_trend(recent, older) is expected


def test_tightening_history_reports_decreasing_variance() -> None:
    older = [40.0, 80.0, 40.0, 80.0, 40.0]
    recent = [70.0, 71.0, 70.0, 71.0, 70.0, 71.0, 70.0]

    state = derive_learning_state(_inputs(older + recent))

    assert state.snapshot_count == 12
    assert state.variance_current < 1
    assert state.variance_trend is VarianceTrend.DECREASING


def test_widening_history_reports_increasing_variance() -> None:
    older = [70.0, 71.0, 70.0, 71.0, 70.0]
    recent = [40.0, 80.0, 40.0, 80.0, 40.0, 80.0, 40.0]

    state = derive_learning_state(_inputs(older + recent))

    assert state.variance_trend is VarianceTrend.INCREASING
