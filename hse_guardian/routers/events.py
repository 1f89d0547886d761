# hse_guardian/routers/events.py
"""
Live engine event feed.
WS /ws/events — pushes {"type": ..., "data": ...} for every camera update,
new detection, score change and log clear. Client messages are ignored.
"""

import asyncio
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from hse_guardian.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

_QUEUE_SIZE = 500


@router.websocket("/ws/events")
async def event_stream(websocket: WebSocket):
    engine = websocket.app.state.engine
    queue: asyncio.Queue = asyncio.Queue(maxsize=_QUEUE_SIZE)

    def _enqueue(event_type, payload):
        try:
            queue.put_nowait({"type": event_type, "data": payload})
        except asyncio.QueueFull:
            # Slow client: drop the oldest event to make room
            queue.get_nowait()
            queue.put_nowait({"type": event_type, "data": payload})

    async def _forward():
        while True:
            message = await queue.get()
            await websocket.send_text(json.dumps(message))

    # Subscribe before accepting so nothing emitted after the handshake is missed
    unsubscribe = engine.events.subscribe(_enqueue)
    sender = None
    try:
        await websocket.accept()
        logger.info(f"WebSocket client connected ({len(engine.events)} subscribers)")
        sender = asyncio.create_task(_forward())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        if sender is not None:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"WebSocket sender stopped: {e}")
        logger.info("WebSocket client disconnected")
