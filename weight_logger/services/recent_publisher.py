from __future__ import annotations
import asyncio
import logging
from typing import Optional

from ..core.config import settings
from ..domain.errors import StorageError
from ..domain.interfaces import Repository
from .broadcaster import WebSocketBroadcaster

logger = logging.getLogger(__name__)


class RecentEventsPublisher:
    """Periodically pushes the last few stored events to every dashboard client."""

    def __init__(self, repo: Repository, broadcaster: WebSocketBroadcaster) -> None:
        self._repo = repo
        self._broadcaster = broadcaster
        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None

    async def start(self) -> None:
        # Bound to the running loop; a later lifespan gets a fresh one
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="recent_events_publisher")

    async def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        if self._task:
            await self._task
            self._task = None

    async def publish_once(self) -> int:
        if self._broadcaster.client_count == 0:
            return 0
        events = await self._repo.query_recent_events(settings.recent_limit)
        return self._broadcaster.broadcast("recentWeightData", [e.to_dict() for e in events])

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await self.publish_once()
            except StorageError as e:
                logger.warning("Recent events unavailable: %s", e)
            except Exception as e:
                logger.exception("Recent events publisher error: %s", e)

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=settings.recent_broadcast_seconds)
            except asyncio.TimeoutError:
                pass
