"""Webhook receiver registry."""

from ..exceptions import ConnectorNotFoundError
from .base import BaseWebhookReceiver, WebhookRequest, WebhookResult
from .slack import SlackEventsReceiver

_RECEIVER_REGISTRY: dict[str, type[BaseWebhookReceiver]] = {}


def register_receiver(name: str, receiver_class: type[BaseWebhookReceiver]) -> None:
    _RECEIVER_REGISTRY[name] = receiver_class


def get_receiver(name: str) -> type[BaseWebhookReceiver]:
    """
    Get a webhook receiver class by service name.

    Raises:
        ConnectorNotFoundError: If no receiver is registered for ``name``
    """
    if name not in _RECEIVER_REGISTRY:
        available = ", ".join(sorted(_RECEIVER_REGISTRY)) or "none"
        raise ConnectorNotFoundError(
            f"Webhook receiver '{name}' is not registered. Available receivers: {available}."
        )
    return _RECEIVER_REGISTRY[name]


register_receiver("slack", SlackEventsReceiver)

__all__ = [
    "BaseWebhookReceiver",
    "SlackEventsReceiver",
    "WebhookRequest",
    "WebhookResult",
    "get_receiver",
    "register_receiver",
]
