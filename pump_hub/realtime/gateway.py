"""Fan-out en tiempo real hacia dashboards por WebSocket."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import orjson
from fastapi import WebSocket

from ..core.domain import CommandResult, RemoteCommand, RemoteOrigin
from ..core.ports import CommandHandler, FanoutGateway
from ..metrics import WS_CLIENTS

logger = logging.getLogger(__name__)

DEFAULT_PING_INTERVAL = 30.0


def envelope(event_type: str, data: Any) -> str:
    return orjson.dumps({
        "type": event_type,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }).decode()


class WebSocketFanoutGateway(FanoutGateway):
    """Conjunto de suscriptores WebSocket.

    El broadcast itera sobre una copia del conjunto: conexiones y
    desconexiones concurrentes no afectan el envío en curso. Un envío
    fallido descarta esa conexión y no afecta a las demás.
    """

    def __init__(self, ping_interval: float = DEFAULT_PING_INTERVAL):
        self._connections: Set[WebSocket] = set()
        self._handler: Optional[CommandHandler] = None
        self._ping_interval = ping_interval
        self._ping_task: Optional[asyncio.Task] = None
        self._stats = {"connected_total": 0, "broadcasts": 0, "send_failures": 0, "commands": 0}

    def set_command_handler(self, handler: CommandHandler) -> None:
        self._handler = handler

    @property
    def subscriber_count(self) -> int:
        return len(self._connections)

    async def start(self) -> None:
        if self._ping_interval > 0:
            self._ping_task = asyncio.create_task(self._ping_loop(), name="ws-ping")

    async def stop(self) -> None:
        if self._ping_task is not None:
            self._ping_task.cancel()
            try:
                await self._ping_task
            except asyncio.CancelledError:
                pass
            self._ping_task = None
        for ws in list(self._connections):
            try:
                await ws.close()
            except Exception as e:
                logger.debug("[WS] Close error: %s", e)
        self._connections.clear()
        WS_CLIENTS.set(0)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)
        self._stats["connected_total"] += 1
        WS_CLIENTS.set(len(self._connections))
        logger.info("[WS] Client connected (total=%d)", len(self._connections))

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._connections:
            self._connections.discard(websocket)
            WS_CLIENTS.set(len(self._connections))
            logger.info("[WS] Client disconnected (total=%d)", len(self._connections))

    async def broadcast(self, event_type: str, data: Any) -> int:
        if not self._connections:
            return 0
        message = envelope(event_type, data)
        delivered = 0
        dead = []
        for ws in list(self._connections):
            try:
                await ws.send_text(message)
                delivered += 1
            except Exception as e:
                self._stats["send_failures"] += 1
                logger.warning("[WS] Send failed, dropping client: %s", e)
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)
        self._stats["broadcasts"] += 1
        return delivered

    async def send_to(self, websocket: WebSocket, event_type: str, data: Any) -> None:
        await websocket.send_text(envelope(event_type, data))

    async def handle_client_message(self, websocket: WebSocket, message: Dict[str, Any]) -> None:
        """Mensajes entrantes del dashboard: ``{type: "controlPump", action}``."""
        if message.get("type") != "controlPump":
            logger.debug("[WS] Ignoring message type %r", message.get("type"))
            return

        self._stats["commands"] += 1
        action = message.get("action")
        try:
            command = RemoteCommand.from_action(str(action), RemoteOrigin.DASHBOARD)
        except ValueError:
            result = CommandResult(False, f"Acción inválida: {action}")
        else:
            if self._handler is None:
                result = CommandResult(False, "Control no disponible")
            else:
                try:
                    result = await self._handler(command)
                except Exception as e:
                    logger.exception("[WS] Command %s failed: %s", command.type.value, e)
                    result = CommandResult(False, "Error interno")

        data = result.to_dict()
        data["action"] = action
        await self.send_to(websocket, "commandResult", data)

    async def _ping_loop(self) -> None:
        while True:
            await asyncio.sleep(self._ping_interval)
            await self.broadcast("ping", None)

    def health_check(self) -> Dict[str, Any]:
        return {"clients": len(self._connections), **self._stats}
