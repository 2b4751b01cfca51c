"""Structured logging for webhook deliveries, poll cycles and fusion computations."""

from __future__ import annotations

import logging
import sys
from threading import Lock
from typing import Any, Final

from .config import get_settings

# Every record carries the tenant, the provider and the vendor event id (or "-").
CONTEXT_FIELDS: Final[tuple[str, ...]] = (
    "user_id",
    "service_name",
    "correlation_id",
    "status",
    "duration_ms",
)

DEFAULT_CONTEXT: Final[dict[str, str]] = {field: "-" for field in CONTEXT_FIELDS}

LOG_FORMAT: Final[str] = (
    "%(asctime)s | %(levelname)s | %(name)s | "
    "user_id=%(user_id)s | service=%(service_name)s | correlation_id=%(correlation_id)s | "
    "status=%(status)s | duration_ms=%(duration_ms)s | %(message)s"
)

_configured = False
_configure_lock: Final = Lock()


class ContextualFormatter(logging.Formatter):
    """Fill absent context fields with ``-`` so third-party records still format."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        for field in CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, DEFAULT_CONTEXT[field])
        return super().format(record)


def _configure_root_logger() -> None:
    global _configured
    with _configure_lock:
        if _configured:
            return

        level = getattr(logging, get_settings().log_level, logging.INFO)
        formatter = ContextualFormatter(LOG_FORMAT)
        root = logging.getLogger()
        root.setLevel(level)

        if not root.handlers:
            root.addHandler(logging.StreamHandler(sys.stdout))
        for handler in root.handlers:
            handler.setFormatter(formatter)

        _configured = True


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Adapter whose per-call ``extra`` overrides the bound context instead of replacing it."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:  # type: ignore[override]
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def setup_logger(
    name: str,
    *,
    level: str | None = None,
    context: dict[str, Any] | None = None,
) -> logging.LoggerAdapter:
    """Return an adapter for ``name`` bound to ``context``.

    The root handler is installed on first use at the configured
    ``FUSION_LOG_LEVEL``; ``level`` overrides it for this logger only.
    """

    _configure_root_logger()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO) if level else logging.NOTSET)
    return StructuredLoggerAdapter(logger, {**DEFAULT_CONTEXT, **(context or {})})


def log_poll_outcome(
    logger: logging.Logger | logging.LoggerAdapter,
    *,
    user_id: str,
    service_name: str,
    status: str,
    duration_ms: int | None = None,
    **extra_context: Any,
) -> None:
    """
    Log the outcome of polling one tenant with structured context.

    Args:
        logger: Logger instance
        user_id: Tenant the poll ran for
        service_name: Provider that was polled
        status: success, skipped or error
        duration_ms: Wall time spent on the tenant
        **extra_context: Additional context appended to the message
    """
    structured_context = {
        "user_id": user_id,
        "service_name": service_name,
        "status": status,
        "duration_ms": duration_ms if duration_ms is not None else "-",
    }
    suffix = f" | context={extra_context}" if extra_context else ""

    if status == "success":
        logger.info(f"Poll {status}{suffix}", extra=structured_context)
    elif status == "skipped":
        logger.warning(f"Poll {status}{suffix}", extra=structured_context)
    else:
        logger.error(f"Poll {status}{suffix}", extra=structured_context)


def log_webhook_outcome(
    logger: logging.Logger | logging.LoggerAdapter,
    *,
    service_name: str,
    status: str,
    user_id: str | None = None,
    correlation_id: str | None = None,
    **extra_context: Any,
) -> None:
    """Log one webhook delivery; correlation_id carries the vendor event id."""

    structured_context = {
        "user_id": user_id or "-",
        "service_name": service_name,
        "status": status,
        "correlation_id": correlation_id or "-",
    }
    suffix = f" | context={extra_context}" if extra_context else ""

    if status == "accepted":
        logger.info(f"Webhook {status}{suffix}", extra=structured_context)
    elif status == "error":
        logger.error(f"Webhook {status}{suffix}", extra=structured_context)
    else:
        logger.warning(f"Webhook {status}{suffix}", extra=structured_context)
