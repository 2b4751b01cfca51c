"""Tests for AI insight phase progression."""

from __future__ import annotations

from fusion_ingestor.scoring.phases import AIInsightPhase, PhaseCounters, compute_phase

READY = PhaseCounters(
    metrics_count=120,
    active_integrations_count=3,
    days_since_first_integration=45,
    successful_poll_cycles=200,
    fusion_score_recalculations=120,
    variance_stability_percent=80.0,
    system_health_stable_days=20,
)


def test_no_activity_is_locked() -> None:
    phase = compute_phase(PhaseCounters())

    assert phase.current_phase is AIInsightPhase.LOCKED
    assert phase.next_phase is AIInsightPhase.DESCRIPTIVE
    assert phase.next_phase_requirements == ["Metric snapshots: 0/1", "Active integrations: 0/1"]
    assert phase.days_until_unlock_estimate is None


def test_first_metric_unlocks_descriptive() -> None:
    phase = compute_phase(PhaseCounters(metrics_count=1, active_integrations_count=1))

    assert phase.current_phase is AIInsightPhase.DESCRIPTIVE
    assert phase.next_phase is AIInsightPhase.DIAGNOSTIC
    assert phase.days_until_unlock_estimate == 7
    assert len(phase.next_phase_requirements) == 3


def test_all_requirements_met_is_predictive() -> None:
    phase = compute_phase(READY)

    assert phase.current_phase is AIInsightPhase.PREDICTIVE
    assert phase.next_phase is None
    assert phase.next_phase_requirements == []


def test_requirements_are_cumulative() -> None:
    counters = PhaseCounters(
        metrics_count=READY.metrics_count,
        active_integrations_count=0,
        days_since_first_integration=READY.days_since_first_integration,
        successful_poll_cycles=READY.successful_poll_cycles,
        fusion_score_recalculations=READY.fusion_score_recalculations,
        variance_stability_percent=READY.variance_stability_percent,
        system_health_stable_days=READY.system_health_stable_days,
    )

    assert compute_phase(counters).current_phase is AIInsightPhase.LOCKED


def test_unstable_variance_holds_at_diagnostic() -> None:
    counters = PhaseCounters(
        metrics_count=40,
        active_integrations_count=2,
        days_since_first_integration=20,
        successful_poll_cycles=30,
        variance_stability_percent=50.0,
    )

    phase = compute_phase(counters)
    payload = phase.as_dict()

    assert phase.current_phase is AIInsightPhase.DIAGNOSTIC
    assert payload["next_phase"] == "prescriptive"
    assert payload["next_phase_requirements"] == ["Variance stability percent: 50/60"]
    assert payload["metrics_count"] == 40
    assert payload["days_until_unlock_estimate"] is None
