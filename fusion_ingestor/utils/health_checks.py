"""Readiness probes for the database, the Celery broker and the fusion engine."""

from __future__ import annotations

import httpx
from sqlalchemy import text

from ..models.base import get_engine
from .config import get_settings
from .health import ComponentHealth, HealthStatus, get_health_checker


def _result(name: str, status: HealthStatus, message: str, **metadata: object) -> ComponentHealth:
    return ComponentHealth(name=name, status=status, message=message, metadata=metadata)


def check_database() -> ComponentHealth:
    """Run ``SELECT 1`` on the shared engine that stores events and fusion metrics."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except Exception as exc:
        return _result("database", HealthStatus.UNHEALTHY, f"Database connection failed: {exc}")
    return _result("database", HealthStatus.HEALTHY, "Database connection successful", dialect=engine.dialect.name)


def check_redis() -> ComponentHealth:
    """Ping the broker; without one, webhooks still work but scheduled polling does not."""
    redis_url = get_settings().redis_url
    if not redis_url:
        return _result(
            "redis",
            HealthStatus.DEGRADED,
            "Redis URL not configured; scheduled polling is disabled",
        )

    import redis as redis_lib

    client = redis_lib.from_url(redis_url, socket_timeout=2)
    try:
        client.ping()
    except Exception as exc:
        return _result("redis", HealthStatus.UNHEALTHY, f"Redis connection failed: {exc}")
    finally:
        client.close()
    return _result("redis", HealthStatus.HEALTHY, "Redis connection successful")


async def check_fusion_engine() -> ComponentHealth:
    """Report which engine answers analysis calls and whether a remote one is reachable."""
    settings = get_settings()
    if not settings.engine_url:
        return _result("fusion_engine", HealthStatus.HEALTHY, "Null engine in use", mode="null")

    try:
        async with httpx.AsyncClient(timeout=settings.engine_timeout_seconds) as client:
            response = await client.get(f"{settings.engine_url}/health")
    except httpx.HTTPError as exc:
        return _result("fusion_engine", HealthStatus.DEGRADED, f"Engine unreachable: {exc}", mode="remote")

    if response.is_success:
        return _result("fusion_engine", HealthStatus.HEALTHY, "Remote engine reachable", mode="remote")
    return _result(
        "fusion_engine",
        HealthStatus.DEGRADED,
        f"Engine health returned HTTP {response.status_code}",
        mode="remote",
    )


def register_all_health_checks() -> None:
    """Register the probes with the process-wide checker (called at API startup)."""

    checker = get_health_checker()
    checker.register_check("database", check_database)
    checker.register_check("redis", check_redis)
    checker.register_check("fusion_engine", check_fusion_engine)
