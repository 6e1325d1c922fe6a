"""In-process event publisher with per-topic subscribers."""

from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Tuple

import structlog

from txmonitor.monitor.models import StatusUpdateEvent
from txmonitor.monitor.ports import EventPublisher

logger = structlog.get_logger()

Handler = Callable[[StatusUpdateEvent], Awaitable[None]]


class InMemoryEventPublisher(EventPublisher):
    """
    Fans published events out to async subscribers of the topic.

    Keeps every published (topic, event) pair for inspection. A failing
    subscriber is logged and does not affect the others or the publisher.
    """

    def __init__(self, history_size: int = 1000):
        self.history_size = history_size
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self.published: List[Tuple[str, StatusUpdateEvent]] = []

    def subscribe(self, topic: str, handler: Handler):
        """Subscribe handler to a topic."""
        self._handlers[topic].append(handler)

    async def publish(self, topic: str, event: StatusUpdateEvent) -> None:
        self.published.append((topic, event))
        if len(self.published) > self.history_size:
            self.published = self.published[-self.history_size :]

        logger.info(
            "event.published",
            topic=topic,
            tx_hash=event.tx_hash,
            status=event.tx_status.value,
            idempotency_key=event.idempotency_key,
        )
        for handler in self._handlers.get(topic, []):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "event.handler_failed",
                    topic=topic,
                    tx_hash=event.tx_hash,
                    error=str(e),
                    exc_info=True,
                )
