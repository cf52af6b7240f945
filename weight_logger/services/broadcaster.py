from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Tuple

logger = logging.getLogger(__name__)


class WebSocketBroadcaster:
    """
    Fan-out hub for dashboard clients.

    Each subscriber gets its own bounded queue; broadcast() never blocks and
    drops messages for a subscriber whose queue is full.
    """

    def __init__(self, queue_size: int = 32) -> None:
        self._subscribers: Dict[int, asyncio.Queue] = {}
        self._next_token = 1
        self._queue_size = max(1, queue_size)

    @property
    def client_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Tuple[int, asyncio.Queue]:
        q: asyncio.Queue = asyncio.Queue(self._queue_size)
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = q
        return token, q

    def unsubscribe(self, token: int) -> None:
        self._subscribers.pop(token, None)

    def broadcast(self, topic: str, payload: Any) -> int:
        message = {"topic": topic, "data": payload}
        delivered = 0
        for token, q in list(self._subscribers.items()):
            try:
                q.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                # Slow client; it catches up with the next snapshot.
                logger.debug("Dropping %s for subscriber %s (queue full)", topic, token)
        return delivered
