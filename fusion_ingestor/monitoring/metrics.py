"""Prometheus metrics definitions for Fusion_Ingestor."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

WEBHOOK_DELIVERIES = Counter(
    "webhook_deliveries_total",
    "Total webhook deliveries by service and outcome.",
    labelnames=("service", "outcome"),
)

POLL_RUNS = Counter(
    "poll_runs_total",
    "Total poll cycles by provider and status.",
    labelnames=("service", "status"),
)

POLL_TENANT_ERRORS = Counter(
    "poll_tenant_errors_total",
    "Total per-tenant failures during poll cycles.",
    labelnames=("service", "error_type"),
)

FUSION_COMPUTATIONS = Counter(
    "fusion_computations_total",
    "Total fusion metric computations by status.",
    labelnames=("status",),
)

FUSION_ANOMALIES = Counter(
    "fusion_anomalies_total",
    "Total samples flagged as anomalous.",
)

PERSISTENCE_FAILURES = Counter(
    "persistence_failures_total",
    "Total database write failures grouped by operation.",
    labelnames=("operation",),
)

PROCESSING_DURATION = Histogram(
    "processing_duration_seconds",
    "Distribution of request processing durations in seconds.",
    labelnames=("operation",),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)


def record_webhook_delivery(service: str, outcome: str) -> None:
    """Increment the webhook delivery counter with the supplied labels."""

    WEBHOOK_DELIVERIES.labels(service=service, outcome=outcome).inc()


def record_poll_run(service: str, status: str) -> None:
    POLL_RUNS.labels(service=service, status=status).inc()


def record_poll_tenant_error(service: str, error_type: str) -> None:
    POLL_TENANT_ERRORS.labels(service=service, error_type=error_type).inc()


def record_fusion_computation(status: str, *, anomalous: bool = False) -> None:
    """Count one computed sample, and the anomaly counter when it was flagged."""

    FUSION_COMPUTATIONS.labels(status=status).inc()
    if anomalous:
        FUSION_ANOMALIES.inc()


def record_persistence_failure(operation: str) -> None:
    PERSISTENCE_FAILURES.labels(operation=operation).inc()


def observe_processing_duration(operation: str, duration_seconds: float) -> None:
    """Record a processing duration in seconds."""

    PROCESSING_DURATION.labels(operation=operation).observe(max(duration_seconds, 0.0))
