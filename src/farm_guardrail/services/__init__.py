"""Outbound services: webhook dispatch and lifecycle event fan-out."""

from farm_guardrail.services.dispatcher import (
    DispatchClient,
    WebhookDispatcher,
    build_webhook_url,
    check_connection,
    format_webhook_result,
    normalize_event_name,
)
from farm_guardrail.services.events import ActionEventNotifier, ActionListener

__all__ = [
    "ActionEventNotifier",
    "ActionListener",
    "DispatchClient",
    "WebhookDispatcher",
    "build_webhook_url",
    "check_connection",
    "format_webhook_result",
    "normalize_event_name",
]
