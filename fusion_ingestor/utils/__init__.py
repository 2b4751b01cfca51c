"""Utilities package initialization."""
from .config import (
    GlobalSettings,
    ServiceConfiguration,
    ensure_runtime_configuration,
    get_service_configuration,
    get_settings,
    load_runtime_secrets,
    read_yaml_document,
)
from .logging import log_poll_outcome, log_webhook_outcome, setup_logger

__all__ = [
    "GlobalSettings",
    "ServiceConfiguration",
    "ensure_runtime_configuration",
    "get_settings",
    "get_service_configuration",
    "load_runtime_secrets",
    "read_yaml_document",
    "log_poll_outcome",
    "log_webhook_outcome",
    "setup_logger",
]
