"""Celery tasks running scheduled poll cycles."""

from __future__ import annotations

import asyncio
from typing import Any, cast

from celery import Task

from ..connectors import get_poller, list_pollers
from ..exceptions import FusionIngestorError
from ..monitoring.metrics import record_poll_run
from ..utils.config import ensure_runtime_configuration, get_settings
from ..utils.logging import setup_logger
from .celery_app import celery_app

logger = setup_logger(__name__, context={"service_name": "CeleryTasks"})

POLLING_TASKS: dict[str, Task] = {}


def run_poll_cycle(provider: str) -> dict[str, Any]:
    """Execute one poll cycle synchronously for Celery workers and the CLI."""

    settings = ensure_runtime_configuration(get_settings())
    poller = get_poller(provider)(settings)

    try:
        return asyncio.run(poller.run_cycle())
    except FusionIngestorError as exc:
        record_poll_run(provider, "error")
        logger.error(
            "Poll cycle failed: %s",
            exc,
            extra={"service_name": provider, "status": "error"},
        )
        raise


def _register_task(provider: str) -> None:
    """Register a Celery task for the provided poller name."""

    task_name = f"fusion_ingestor.tasks.polling.poll_{provider}_task"

    @celery_app.task(name=task_name, bind=True)
    def _task(self) -> dict[str, Any]:
        """Run one poll cycle for the bound provider."""

        return run_poll_cycle(provider)

    POLLING_TASKS[provider] = cast(Task, _task)


for provider_key in list_pollers():
    _register_task(provider_key)


__all__ = [
    "POLLING_TASKS",
    "run_poll_cycle",
]
