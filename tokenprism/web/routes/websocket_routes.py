"""
Real-time token stream over WebSocket

Frames are JSON text. Server events are ``{"event": ..., "data": ...}``;
client commands are ``{"command": ..., "data": ..., "id": ...}``.
"""

import asyncio
import json
import time
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from tokenprism.core.container import ServiceContainer
from tokenprism.core.logging import log_context
from tokenprism.core.services.broadcaster import CONNECTED

router = APIRouter()

ACK = "ack"
FILTER_COMMANDS = {"subscribe:filters", "unsubscribe:filters"}


class WebSocketConnection:
    """Adapts a FastAPI WebSocket to the broadcaster's connection protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.connection_id = uuid4().hex
        self._send_lock = asyncio.Lock()

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        async with self._send_lock:
            await self.websocket.send_json({"event": event, "data": payload})


def _address_of(data: Any) -> str | None:
    if isinstance(data, str):
        return data.strip() or None
    if isinstance(data, dict) and isinstance(data.get("address"), str):
        return data["address"].strip() or None
    return None


async def handle_command(container: ServiceContainer, connection: WebSocketConnection, raw: str) -> None:
    """Dispatch one client frame. Malformed frames are logged and ignored."""
    try:
        message = json.loads(raw)
    except ValueError:
        logger.debug("Ignoring non-JSON frame")
        return
    if not isinstance(message, dict) or not isinstance(message.get("command"), str):
        logger.debug("Ignoring frame without command")
        return

    command = message["command"]
    data = message.get("data")
    registry = container.registry
    broadcaster = container.broadcaster
    result: dict[str, Any]

    if command == "subscribe:token":
        address = _address_of(data)
        if address:
            registry.join_token(connection.connection_id, address)
        result = {"ok": address is not None}
    elif command == "unsubscribe:token":
        address = _address_of(data)
        if address:
            registry.leave_token(connection.connection_id, address)
        result = {"ok": address is not None}
    elif command == "subscribe:filters":
        result = await broadcaster.subscribe_filters(connection, data if isinstance(data, dict) else {})
    elif command == "unsubscribe:filters":
        result = await broadcaster.unsubscribe_filters(connection)
    else:
        logger.debug("Unknown command", command=command)
        result = {"ok": False}

    if "id" in message or command in FILTER_COMMANDS:
        await connection.send(ACK, {"id": message.get("id"), **result})


@router.websocket("/ws")
async def token_stream(websocket: WebSocket) -> None:
    await websocket.accept()
    container: ServiceContainer = websocket.app.state.container
    connection = WebSocketConnection(websocket)

    container.registry.connect(connection)
    container.metrics.set_connected_clients(container.registry.connection_count)
    with log_context(connection_id=connection.connection_id):
        try:
            await connection.send(
                CONNECTED,
                {
                    "message": "Connected to tokenprism",
                    "connectionId": connection.connection_id,
                    "timestamp": int(time.time() * 1000),
                },
            )
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000))
                text = frame.get("text")
                if text is None:
                    logger.debug("Ignoring binary frame")
                    continue
                await handle_command(container, connection, text)
        except WebSocketDisconnect:
            logger.debug("Client disconnected")
        finally:
            container.registry.disconnect(connection.connection_id)
            container.metrics.set_connected_clients(container.registry.connection_count)
