"""Readiness reporting: per-component probes folded into one service status."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

SERVICE_NAME = "fusion_ingestor"
SERVICE_VERSION = "0.1.0"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    """Outcome of one probe (database, broker, engine)."""

    name: str
    status: HealthStatus
    message: str | None = None
    checked_at: datetime = Field(default_factory=_now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SystemHealth(BaseModel):
    """Body of ``GET /health``."""

    status: HealthStatus
    service: str = SERVICE_NAME
    version: str = SERVICE_VERSION
    checked_at: datetime = Field(default_factory=_now)
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    uptime_seconds: float | None = None


def fold_statuses(components: dict[str, ComponentHealth], required: Iterable[str]) -> HealthStatus:
    """Collapse component results into the service status.

    A failing required component makes the service unhealthy. Anything short of
    healthy elsewhere only degrades it. No components at all is unhealthy.
    """
    if not components:
        return HealthStatus.UNHEALTHY

    required_names = set(required)
    if any(
        component.status is HealthStatus.UNHEALTHY
        for name, component in components.items()
        if name in required_names
    ):
        return HealthStatus.UNHEALTHY
    if all(component.status is HealthStatus.HEALTHY for component in components.values()):
        return HealthStatus.HEALTHY
    return HealthStatus.DEGRADED


class HealthChecker:
    """Registry of named probes; sync probes run in a worker thread."""

    def __init__(self) -> None:
        self._probes: dict[str, Callable[[], Any]] = {}
        self._started_at = _now()

    def register_check(self, component_name: str, check_fn: Callable[[], Any]) -> None:
        """Add or replace the probe for ``component_name``."""
        self._probes[component_name] = check_fn

    @property
    def components(self) -> list[str]:
        return sorted(self._probes)

    async def check_component(self, component_name: str) -> ComponentHealth:
        probe = self._probes.get(component_name)
        if probe is None:
            return ComponentHealth(
                name=component_name,
                status=HealthStatus.UNHEALTHY,
                message=f"Component '{component_name}' not registered",
            )

        try:
            if asyncio.iscoroutinefunction(probe):
                return await probe()
            return await asyncio.to_thread(probe)
        except Exception as exc:
            return ComponentHealth(
                name=component_name,
                status=HealthStatus.UNHEALTHY,
                message=f"Health check failed: {exc}",
            )

    async def check_all(
        self, timeout: float = 5.0, required_components: list[str] | None = None
    ) -> SystemHealth:
        """Run every probe concurrently; probes still pending after ``timeout`` count as unhealthy.

        ``required_components`` defaults to every registered component.
        """
        tasks = {name: asyncio.create_task(self.check_component(name)) for name in self._probes}
        if tasks:
            _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
            for task in pending:
                task.cancel()

        components = {
            name: task.result()
            if task.done() and not task.cancelled()
            else ComponentHealth(name=name, status=HealthStatus.UNHEALTHY, message="Health check timed out")
            for name, task in tasks.items()
        }
        required = required_components if required_components is not None else list(self._probes)

        return SystemHealth(
            status=fold_statuses(components, required),
            components=components,
            uptime_seconds=(_now() - self._started_at).total_seconds(),
        )


_health_checker: HealthChecker | None = None


def get_health_checker() -> HealthChecker:
    """Return the process-wide checker, creating it on first use."""
    global _health_checker
    if _health_checker is None:
        _health_checker = HealthChecker()
    return _health_checker
