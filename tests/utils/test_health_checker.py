"""Tests for health check aggregation."""

from __future__ import annotations

import asyncio

import pytest

from fusion_ingestor.utils.health import ComponentHealth, HealthChecker, HealthStatus


def _component(name: str, status: HealthStatus):
    def check() -> ComponentHealth:
        return ComponentHealth(name=name, status=status)

    return check


@pytest.mark.asyncio
async def test_all_healthy_components() -> None:
    checker = HealthChecker()
    checker.register_check("database", _component("database", HealthStatus.HEALTHY))

    health = await checker.check_all()

    assert health.status is HealthStatus.HEALTHY
    assert health.components["database"].status is HealthStatus.HEALTHY
    assert health.uptime_seconds is not None


@pytest.mark.asyncio
async def test_optional_failure_degrades() -> None:
    checker = HealthChecker()
    checker.register_check("database", _component("database", HealthStatus.HEALTHY))
    checker.register_check("redis", _component("redis", HealthStatus.UNHEALTHY))

    health = await checker.check_all(required_components=["database"])

    assert health.status is HealthStatus.DEGRADED


@pytest.mark.asyncio
async def test_raising_check_marks_component_unhealthy() -> None:
    def broken() -> ComponentHealth:
        raise RuntimeError("connection refused")

    checker = HealthChecker()
    checker.register_check("database", broken)

    health = await checker.check_all()

    assert health.status is HealthStatus.UNHEALTHY
    assert "connection refused" in (health.components["database"].message or "")


@pytest.mark.asyncio
async def test_slow_check_times_out() -> None:
    async def slow() -> ComponentHealth:
        await asyncio.sleep(5)
        return ComponentHealth(name="engine", status=HealthStatus.HEALTHY)

    checker = HealthChecker()
    checker.register_check("engine", slow)

    health = await checker.check_all(timeout=0.05)

    assert health.components["engine"].message == "Health check timed out"
    assert health.status is HealthStatus.UNHEALTHY


@pytest.mark.asyncio
async def test_no_components_is_unhealthy() -> None:
    health = await HealthChecker().check_all()

    assert health.status is HealthStatus.UNHEALTHY
