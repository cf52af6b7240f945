from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..core.config import settings
from ..domain.errors import StorageError
from ..domain.status import StatusRegister, StatusSignal
from ..services.broadcaster import WebSocketBroadcaster
from ..storage.sqlite_repo import SQLiteRepository
from .routes import get_broadcaster, get_repo, get_status

logger = logging.getLogger(__name__)

ws_router = APIRouter()


async def _pump(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


@ws_router.websocket("/ws")
async def websocket_dashboard(
    websocket: WebSocket,
    hub: WebSocketBroadcaster = Depends(get_broadcaster),
    status: StatusRegister = Depends(get_status),
    repo: SQLiteRepository = Depends(get_repo),
):
    await websocket.accept()
    token, queue = hub.subscribe()
    logger.info("Dashboard client attached (clients=%d)", hub.client_count)
    status.request(StatusSignal.CLIENT_JOINED)

    pump: asyncio.Task | None = None
    try:
        try:
            recent = await repo.query_recent_events(settings.recent_limit)
            await websocket.send_json({"topic": "initialWeightData", "data": [e.to_dict() for e in recent]})
        except StorageError as e:
            logger.error("Initial weight data unavailable: %s", e)
        except WebSocketDisconnect:
            raise
        except Exception:
            # Live updates still flow without the snapshot
            logger.exception("Initial weight data failed")

        pump = asyncio.create_task(_pump(websocket, queue))
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("Dashboard client error")
    finally:
        if pump is not None:
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.debug("Dashboard pump ended with error", exc_info=True)
        hub.unsubscribe(token)
        logger.info("Dashboard client detached (clients=%d)", hub.client_count)
        status.request(StatusSignal.CLIENT_LEFT)
