from __future__ import annotations

import logging

from ..domain.errors import StorageError
from ..domain.interfaces import Broadcaster, Repository
from ..domain.models import WeightEvent

logger = logging.getLogger(__name__)


class EventSink:
    """Hands a committed WeightEvent to storage and to live clients, independently."""

    def __init__(self, repo: Repository, broadcaster: Broadcaster) -> None:
        self._repo = repo
        self._broadcaster = broadcaster

    async def publish(self, event: WeightEvent, broadcast: bool = True) -> bool:
        """Returns True only when the event was persisted.
        broadcast=False stores without notifying clients again (storage retries)."""
        persisted = False
        try:
            await self._repo.append_weight_event(event)
            persisted = True
            logger.info("Stored weight event: %s", event.as_mapping())
        except StorageError as e:
            logger.error("Weight event not stored: %s", e)
        except Exception:
            logger.exception("Unexpected storage failure")

        if not broadcast:
            return persisted

        # Broadcast boundary: result ignored, failures never reach the loop.
        try:
            self._broadcaster.broadcast("weightEvent", event.to_dict())
        except Exception:
            logger.warning("Broadcast of weight event failed", exc_info=True)

        return persisted
