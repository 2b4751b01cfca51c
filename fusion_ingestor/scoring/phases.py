"""AI insight phase progression computed from observable system counters."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class AIInsightPhase(str, Enum):
    LOCKED = "locked"
    DESCRIPTIVE = "descriptive"
    DIAGNOSTIC = "diagnostic"
    PRESCRIPTIVE = "prescriptive"
    PREDICTIVE = "predictive"


@dataclass(frozen=True, slots=True)
class PhaseCounters:
    metrics_count: int = 0
    active_integrations_count: int = 0
    days_since_first_integration: int = 0
    successful_poll_cycles: int = 0
    fusion_score_recalculations: int = 0
    variance_stability_percent: float = 0.0
    system_health_stable_days: int = 0


@dataclass(frozen=True, slots=True)
class Requirement:
    counter: str
    minimum: float
    label: str

    def is_met(self, counters: PhaseCounters) -> bool:
        return getattr(counters, self.counter) >= self.minimum

    def describe(self, counters: PhaseCounters) -> str:
        current = getattr(counters, self.counter)
        return f"{self.label}: {current:g}/{self.minimum:g}"


# Requirements are cumulative: a phase also needs every earlier phase's requirements.
PHASE_REQUIREMENTS: tuple[tuple[AIInsightPhase, tuple[Requirement, ...]], ...] = (
    (
        AIInsightPhase.DESCRIPTIVE,
        (
            Requirement("metrics_count", 1, "Metric snapshots"),
            Requirement("active_integrations_count", 1, "Active integrations"),
        ),
    ),
    (
        AIInsightPhase.DIAGNOSTIC,
        (
            Requirement("metrics_count", 10, "Metric snapshots"),
            Requirement("days_since_first_integration", 7, "Days since first integration"),
            Requirement("successful_poll_cycles", 20, "Successful poll cycles"),
        ),
    ),
    (
        AIInsightPhase.PRESCRIPTIVE,
        (
            Requirement("metrics_count", 30, "Metric snapshots"),
            Requirement("days_since_first_integration", 14, "Days since first integration"),
            Requirement("variance_stability_percent", 60, "Variance stability percent"),
        ),
    ),
    (
        AIInsightPhase.PREDICTIVE,
        (
            Requirement("fusion_score_recalculations", 50, "Fusion score recalculations"),
            Requirement("days_since_first_integration", 30, "Days since first integration"),
            Requirement("system_health_stable_days", 14, "Stable system health days"),
        ),
    ),
)

_DAY_COUNTERS = ("days_since_first_integration", "system_health_stable_days")

_PHASE_REASONS = {
    AIInsightPhase.LOCKED: "Connect an integration and record metrics to unlock insights.",
    AIInsightPhase.DESCRIPTIVE: "Live metrics are available from active integrations.",
    AIInsightPhase.DIAGNOSTIC: "Enough history has accumulated to explain score changes.",
    AIInsightPhase.PRESCRIPTIVE: "Score variance is stable enough to recommend actions.",
    AIInsightPhase.PREDICTIVE: "Sustained stable operation supports forward-looking insights.",
}


@dataclass(frozen=True, slots=True)
class PhaseMetadata:
    current_phase: AIInsightPhase
    phase_reason: str
    next_phase: AIInsightPhase | None
    next_phase_requirements: list[str]
    days_until_unlock_estimate: int | None
    counters: PhaseCounters

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "current_phase": self.current_phase.value,
            "phase_reason": self.phase_reason,
            "next_phase": self.next_phase.value if self.next_phase else None,
            "next_phase_requirements": list(self.next_phase_requirements),
            "days_until_unlock_estimate": self.days_until_unlock_estimate,
        }
        payload.update(asdict(self.counters))
        return payload


def compute_phase(counters: PhaseCounters) -> PhaseMetadata:
    """Return the highest phase whose cumulative requirements are met."""

    current = AIInsightPhase.LOCKED
    next_phase: AIInsightPhase | None = None
    unmet: tuple[Requirement, ...] = ()

    for phase, requirements in PHASE_REQUIREMENTS:
        missing = tuple(req for req in requirements if not req.is_met(counters))
        if missing:
            next_phase = phase
            unmet = missing
            break
        current = phase

    day_gaps = [
        int(req.minimum - getattr(counters, req.counter))
        for req in unmet
        if req.counter in _DAY_COUNTERS
    ]

    return PhaseMetadata(
        current_phase=current,
        phase_reason=_PHASE_REASONS[current],
        next_phase=next_phase,
        next_phase_requirements=[req.describe(counters) for req in unmet],
        days_until_unlock_estimate=max(day_gaps) if day_gaps else None,
        counters=counters,
    )
