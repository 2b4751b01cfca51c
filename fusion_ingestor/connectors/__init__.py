"""Poller registry for managing available vendor connectors."""

from ..exceptions import ConnectorNotFoundError
from .base import BasePoller, MissingCredentialsError
from .monday import MondayPoller
from .quickbooks import QuickBooksPoller
from .slack import SlackPoller
from .teams import TeamsPoller

# Poller registry - register new providers here
_POLLER_REGISTRY: dict[str, type[BasePoller]] = {}


def register_poller(name: str, poller_class: type[BasePoller]) -> None:
    """
    Register a new poller class.

    Args:
        name: Provider name used in routes and task names
        poller_class: Poller class to register
    """
    _POLLER_REGISTRY[name] = poller_class


def get_poller(name: str) -> type[BasePoller]:
    """
    Get a poller class by provider name.

    Raises:
        ConnectorNotFoundError: If the provider is not registered
    """
    if name not in _POLLER_REGISTRY:
        available = sorted(_POLLER_REGISTRY.keys())
        available_display = ", ".join(available) if available else "none"
        raise ConnectorNotFoundError(
            f"Poller '{name}' is not registered. Available pollers: {available_display}."
        )
    return _POLLER_REGISTRY[name]


def list_pollers() -> list[str]:
    """Return list of registered provider names."""
    return list(_POLLER_REGISTRY.keys())


register_poller("slack", SlackPoller)
register_poller("teams", TeamsPoller)
register_poller("monday", MondayPoller)
register_poller("quickbooks", QuickBooksPoller)

__all__ = [
    "BasePoller",
    "MissingCredentialsError",
    "get_poller",
    "list_pollers",
    "register_poller",
]
