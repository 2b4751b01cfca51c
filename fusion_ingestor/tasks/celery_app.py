"""Celery application configuration for Fusion_Ingestor."""

from __future__ import annotations

from celery import Celery

from ..connectors import list_pollers
from ..exceptions import ConfigurationError
from ..utils.config import get_service_configuration, get_settings


def _resolve_redis_url() -> str:
    """Return the Redis URL configured for the application."""

    settings = get_settings()
    return settings.redis_url or "redis://localhost:6379/0"


def _enabled_providers() -> list[str]:
    """Providers listed in the service configuration template, or all known ones."""

    registered = list_pollers()
    try:
        enabled = get_service_configuration().pollers.enabled
    except ConfigurationError:
        return registered
    return [provider for provider in enabled if provider in registered]


def build_beat_schedule(providers: list[str], interval_minutes: int) -> dict[str, dict[str, object]]:
    """One periodic entry per provider, each running a full poll cycle."""

    return {
        f"poll-{provider}": {
            "task": f"fusion_ingestor.tasks.polling.poll_{provider}_task",
            "schedule": interval_minutes * 60.0,
        }
        for provider in providers
    }


celery_app = Celery(
    "fusion_ingestor",
    broker=_resolve_redis_url(),
    backend=_resolve_redis_url(),
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_hijack_root_logger=False,
    beat_schedule=build_beat_schedule(
        _enabled_providers(), get_settings().poll_interval_minutes
    ),
)

celery_app.autodiscover_tasks(["fusion_ingestor.tasks"], related_name="polling")
