# Overview: In-process domain event bus; the notification port for lifecycle events.

"""
Domain Event Bus

Services publish events such as `quote.finalized` or `proof.approved` only
after the owning transaction has committed. Delivery is best effort:

- Listeners run synchronously, in subscription order.
- A listener that raises is logged and skipped; the caller never sees it.
- "*" subscribes to every event.

Each payload is stamped with `event_type` and an ISO-8601 `timestamp`
before listeners receive it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable

from flask import current_app, has_app_context

from .time_utils import to_utc_z, utcnow

WILDCARD = "*"

Listener = Callable[[dict], None]

_fallback_logger = logging.getLogger(__name__)


def _logger():
    return current_app.logger if has_app_context() else _fallback_logger


class EventBus:
    def __init__(self):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, event_type: str, listener: Listener) -> None:
        self._listeners[event_type].append(listener)

    def unsubscribe(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def clear(self) -> None:
        self._listeners.clear()

    def publish(self, event_type: str, payload: dict) -> dict:
        event = dict(payload)
        event["event_type"] = event_type
        event.setdefault("timestamp", to_utc_z(utcnow()))

        _logger().info("event %s %s", event_type, {k: v for k, v in event.items() if k.endswith("_id")})

        for listener in list(self._listeners.get(event_type, [])) + list(self._listeners.get(WILDCARD, [])):
            try:
                listener(event)
            except Exception:
                _logger().exception("Event listener failed for %s", event_type)
        return event
