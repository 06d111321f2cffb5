"""
Event Bus - Connection Lifecycle Notifications
==============================================
Asynchronous pub/sub used to surface WhatsApp session events to subscribers
(admin panel, monitoring, tests) without coupling them to the manager.

Delivery Guarantee: AT_LEAST_ONCE (with retry on failure)
Memory Safe: NO defaultdict, explicit cleanup
Error Isolation: Subscriber crashes don't affect others
"""

import asyncio
import inspect
from typing import Callable, Any, Dict, List

from lodgebot.core.logger import get_logger

logger = get_logger(__name__)


# Event Topics - published by ConnectionManager
TOPICS = {
    "whatsapp.qr": {
        "description": "Pairing QR challenge received, waiting for operator scan",
        "data_structure": {
            "qr_png_path": "str",
            "rendered": "bool"
        }
    },
    "whatsapp.open": {
        "description": "Session opened, reconnect backoff cleared",
        "data_structure": {
            "previous_attempts": "int"
        }
    },
    "whatsapp.close": {
        "description": "Session closed by the transport",
        "data_structure": {
            "status_code": "int (optional)",
            "reason": "str",
            "session_invalid": "bool"
        }
    },
    "whatsapp.reconnect_scheduled": {
        "description": "Reconnection attempt scheduled after backoff delay",
        "data_structure": {
            "attempt": "int",
            "delay_ms": "int"
        }
    },
    "whatsapp.reconnect_exhausted": {
        "description": "Attempt ceiling reached, manager stopped retrying",
        "data_structure": {
            "attempts": "int",
            "max_attempts": "int"
        }
    }
}


class EventBus:
    """
    Simplified EventBus with AT_LEAST_ONCE delivery guarantee.

    Features:
    - Subscribe/publish/unsubscribe pattern
    - Retry logic: ``max_retries`` attempts with exponential backoff (1s, 2s, 4s)
    - Error isolation: subscriber crash doesn't affect others
    - Memory safe: NO defaultdict, explicit cleanup
    """

    def __init__(self, max_retries: int = 3, retry_base_delay: float = 1.0):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._shutdown_requested = False
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._lock = asyncio.Lock()

        logger.debug("event_bus.initialized", {"max_retries": max_retries})

    async def subscribe(self, topic: str, handler: Callable[[Any], Any]) -> None:
        """
        Subscribe to topic with a handler.

        Raises:
            ValueError: If topic or handler is invalid
        """
        if not topic or not isinstance(topic, str):
            raise ValueError("Topic must be a non-empty string")
        if not callable(handler):
            raise ValueError("Handler must be callable")

        async with self._lock:
            if topic not in self._subscribers:
                self._subscribers[topic] = []

            self._subscribers[topic].append(handler)
            subscriber_count = len(self._subscribers[topic])

        logger.debug("event_bus.subscribed", {"topic": topic, "subscribers": subscriber_count})

    async def publish(self, topic: str, data: Dict[str, Any]) -> None:
        """
        Publish event to all subscribers.

        Raises:
            ValueError: If topic or data is invalid
        """
        if not topic or not isinstance(topic, str):
            raise ValueError("Topic must be a non-empty string")
        if not isinstance(data, dict):
            raise ValueError("Data must be a dictionary")

        if self._shutdown_requested:
            logger.warning("event_bus.publish_blocked", {"topic": topic, "reason": "shutting_down"})
            return

        # Snapshot under lock, deliver outside it
        async with self._lock:
            if topic not in self._subscribers:
                return
            subscribers = list(self._subscribers[topic])

        for subscriber in subscribers:
            await self._deliver_with_retry(topic, subscriber, data)

    async def _deliver_with_retry(self, topic: str, subscriber: Callable, data: Dict[str, Any]) -> None:
        retries = 0

        while retries <= self._max_retries:
            try:
                result = subscriber(data)
                if inspect.isawaitable(result):
                    await result
                return

            except Exception as e:
                retries += 1

                if retries > self._max_retries:
                    logger.error("event_bus.delivery_failed", {
                        "topic": topic,
                        "attempts": retries,
                        "error": str(e)
                    })
                    return

                backoff = self._retry_base_delay * (2 ** (retries - 1))
                logger.warning("event_bus.delivery_retry", {
                    "topic": topic,
                    "attempt": retries,
                    "max_retries": self._max_retries,
                    "backoff_seconds": backoff
                })
                await asyncio.sleep(backoff)

    async def unsubscribe(self, topic: str, handler: Callable) -> None:
        async with self._lock:
            if topic in self._subscribers and handler in self._subscribers[topic]:
                self._subscribers[topic].remove(handler)

                if not self._subscribers[topic]:
                    del self._subscribers[topic]

    async def list_topics(self) -> List[str]:
        async with self._lock:
            return [
                f"{topic} ({len(subscribers)} subscribers)"
                for topic, subscribers in self._subscribers.items()
            ]

    async def shutdown(self) -> None:
        """Drop all subscriptions and block further publishing."""
        self._shutdown_requested = True

        async with self._lock:
            subscriber_count = sum(len(subs) for subs in self._subscribers.values())
            self._subscribers.clear()

        logger.info("event_bus.shutdown", {"cleared_subscribers": subscriber_count})
