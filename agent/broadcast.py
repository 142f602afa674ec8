"""
Fan-out of agent events to connected observers.

Delivery is best-effort: no retry and no buffering for observers that are not
connected. Clients reconcile by reloading conversation history.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List

from .events import AgentEvent

logger = logging.getLogger(__name__)

Sink = Callable[[Dict[str, Any]], Awaitable[None]]


class EventBroadcaster:
    """Holds the set of subscribed sinks and publishes events to all of them in order."""

    def __init__(self):
        self._sinks: List[Sink] = []

    def subscribe(self, sink: Sink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def unsubscribe(self, sink: Sink) -> None:
        try:
            self._sinks.remove(sink)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._sinks)

    async def publish(self, event: AgentEvent) -> None:
        message = event.to_wire()
        dead = []
        # snapshot: sinks may unsubscribe while we await
        for sink in list(self._sinks):
            try:
                await sink(message)
            except Exception as e:
                logger.debug(f"Dropping observer after failed send: {e}")
                dead.append(sink)
        for sink in dead:
            self.unsubscribe(sink)
