"""Endpoint WebSocket del dashboard."""

from __future__ import annotations

import logging

import orjson
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def dashboard_socket(websocket: WebSocket):
    """Suscripción del dashboard.

    Protocolo:
    1. Server → systemConfig y la última sensorData (si existe)
    2. Server → sensorData / pumpStatus / systemAlert / systemConfig / ping
    3. Client → {type: "controlPump", action: on|off|auto|manual}
    4. Server → {type: "commandResult", data: {success, message, action}}
    """
    hub = websocket.app.state.hub
    gateway = hub.fanout

    await gateway.connect(websocket)
    try:
        await gateway.send_to(websocket, "systemConfig", hub.core.config_snapshot())
        latest = await hub.core.latest_reading()
        if latest is not None:
            await gateway.send_to(websocket, "sensorData", latest.to_dict())

        while True:
            raw = await websocket.receive_text()
            try:
                message = orjson.loads(raw)
            except orjson.JSONDecodeError:
                logger.warning("[WS] Invalid JSON from client: %.100s", raw)
                continue
            if isinstance(message, dict):
                await gateway.handle_client_message(websocket, message)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.disconnect(websocket)
