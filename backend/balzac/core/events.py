"""
Publish/subscribe channel for configuration change notifications.

Admin routes publish on a topic after they commit a change; in-process
consumers (such as the site settings cache) subscribe to the topics they
depend on.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List
import threading
import logging

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Dict[str, Any]], None]

SITE_CONFIGURATION_CHANGED = "site_configuration.changed"
ADMIN_PRIVILEGES_CHANGED = "admin_privileges.changed"
LEVEL_PRICING_CHANGED = "level_pricing.changed"


class EventChannel:
    """
    Topic -> subscribers registry with synchronous delivery.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` on ``topic``; returns an unsubscribe function."""
        with self._lock:
            self._subscribers[topic].append(callback)
        return lambda: self.unsubscribe(topic, callback)

    def unsubscribe(self, topic: str, callback: Subscriber) -> None:
        with self._lock:
            callbacks = self._subscribers.get(topic, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def subscribers(self, topic: str) -> List[Subscriber]:
        with self._lock:
            return list(self._subscribers.get(topic, []))

    def publish(self, topic: str, payload: Dict[str, Any] | None = None) -> int:
        """
        Deliver ``payload`` to every subscriber of ``topic``.

        A failing subscriber is logged and skipped. Returns the number of
        subscribers that received the event.
        """
        delivered = 0
        for callback in self.subscribers(topic):
            try:
                callback(topic, payload or {})
                delivered += 1
            except Exception:
                logger.exception(f"Subscriber failed on topic {topic}")
        return delivered


# Process-wide channel
events = EventChannel()
