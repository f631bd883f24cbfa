"""Live event stream endpoints.

Two transports carry the same wire messages (underscore style):

- ``GET /api/stream`` -- Server-Sent Events, SSE event name = message type.
- ``WS /synapse`` -- one JSON text frame per message.

Both are plain observers of the delivery channel: a late joiner receives the
active session's start marker and then live events only.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from fastapi import APIRouter, WebSocket
from loguru import logger
from sse_starlette.sse import EventSourceResponse
from starlette.websockets import WebSocketDisconnect

from synapse.bridge.delivery.channel import DeliveryChannel
from synapse.bridge.delivery.observers import Observer
from synapse.bridge.deps import Channel
from synapse.bridge.models.wire import WireMessage

router = APIRouter(tags=["stream"])
ws_router = APIRouter(tags=["stream"])

SSE_PING_SECONDS = 15


@router.get("/stream")
async def handle_stream(channel: Channel) -> EventSourceResponse:
    observer = channel.connect("sse")
    return EventSourceResponse(_sse_messages(channel, observer), ping=SSE_PING_SECONDS)


async def _sse_messages(channel: DeliveryChannel, observer: Observer[WireMessage]) -> AsyncIterator[dict[str, str]]:
    try:
        async for message in observer.stream():
            yield {"event": message.wire_type(), "data": message.dumps()}
    finally:
        channel.disconnect(observer)


@ws_router.websocket("/synapse")
async def handle_websocket(websocket: WebSocket, channel: Channel) -> None:
    await websocket.accept()
    observer = channel.connect("ws")
    watcher = asyncio.create_task(_close_on_disconnect(websocket, observer))
    try:
        async for message in observer.stream():
            await websocket.send_text(message.dumps())
    except WebSocketDisconnect:
        logger.debug("WebSocket: client went away")
    finally:
        watcher.cancel()
        channel.disconnect(observer)


async def _close_on_disconnect(websocket: WebSocket, observer: Observer[WireMessage]) -> None:
    """Drain inbound frames; the stream ends when the client disconnects."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        observer.close()
