from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from realtime_service.config import settings
from realtime_service.infrastructure.ws.connection import Connection
from realtime_service.infrastructure.ws.protocol import WsOutbound
from realtime_service.services.dispatcher import FrameDispatcher
from realtime_service.services.hub import RealtimeHub

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

# Private close code: too many frames without a successful auth.
CLOSE_AUTH_REQUIRED = 4001


@router.websocket("/ws")
async def ws_endpoint(websocket: WebSocket) -> None:
    hub: RealtimeHub = websocket.app.state.hub
    dispatcher: FrameDispatcher = websocket.app.state.dispatcher

    await websocket.accept()
    conn = Connection(websocket)
    logger.debug("WS accepted: conn=%s", conn.id)

    heartbeat_task = asyncio.create_task(_heartbeat(conn), name=f"ws-heartbeat-{conn.id}")
    try:
        while True:
            raw = await websocket.receive_text()
            if not await dispatcher.handle(conn, raw):
                logger.info("WS conn=%s closed: authentication required", conn.id)
                await conn.close(code=CLOSE_AUTH_REQUIRED, reason="Authentication required")
                break
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error on conn=%s user=%s", conn.id, conn.user_id)
    finally:
        heartbeat_task.cancel()
        try:
            await heartbeat_task
        except asyncio.CancelledError:
            pass
        await hub.disconnect(conn)
        logger.debug("WS gone: conn=%s user=%s", conn.id, conn.user_id)


async def _heartbeat(conn: Connection) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    frame = WsOutbound(type="pong").encode()
    while True:
        await asyncio.sleep(interval)
        if not await conn.send(frame):
            return
