"""Celery task package exposing the configured app and polling tasks."""

from __future__ import annotations

from .celery_app import celery_app as app
from .polling import POLLING_TASKS, run_poll_cycle

__all__ = [
    "app",
    "POLLING_TASKS",
    "run_poll_cycle",
]
