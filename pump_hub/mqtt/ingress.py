"""Adaptador de ingreso de telemetría.

Puentea el hilo de red de paho con el event loop: cada mensaje se encola con
``call_soon_threadsafe`` en una cola acotada que consume una única tarea, así
las lecturas se procesan en orden de llegada y de a una.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import orjson
from pydantic import ValidationError

from ..core.ports import DeviceTransport
from ..metrics import MQTT_MESSAGES
from ..orchestration import OrchestrationCore
from .validators import PumpStatusPayload, SystemStatusPayload, validate_telemetry

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000

_Message = Tuple[str, bytes, datetime]


@dataclass(frozen=True)
class IngressTopics:
    sensors: str = "acquasys/sensors"
    pump_status: str = "acquasys/pump/status"
    system_status: str = "acquasys/system/status"
    alerts: str = "acquasys/alerts"

    def all(self) -> Tuple[str, ...]:
        return (self.sensors, self.pump_status, self.system_status, self.alerts)


class TelemetryIngress:
    """Normaliza mensajes MQTT y los entrega al núcleo de orquestación.

    Responsabilidades:
    - Parseo JSON (orjson) y validación (pydantic)
    - Enrutamiento por topic
    - Backpressure: descarta con log si la cola está llena
    - Tracking de estadísticas
    """

    def __init__(
        self,
        transport: DeviceTransport,
        core: OrchestrationCore,
        topics: Optional[IngressTopics] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self._transport = transport
        self._core = core
        self._topics = topics or IngressTopics()
        self._queue_size = queue_size
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self._stats = {
            "received": 0,
            "processed": 0,
            "invalid": 0,
            "dropped": 0,
            "failed": 0,
            "last_message_at": None,
        }

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._task = asyncio.create_task(self._consume(), name="telemetry-ingress")
        self._transport.set_message_handler(self.handle_message)
        self._transport.subscribe(self._topics.all())
        logger.info("[INGRESS] Started (queue_size=%d)", self._queue_size)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[INGRESS] Stopped. %s", self._stats)

    def handle_message(self, topic: str, payload: bytes) -> None:
        """Handler del transporte. Seguro de llamar desde cualquier hilo."""
        if self._loop is None or self._loop.is_closed():
            return
        received_at = datetime.now(timezone.utc)
        self._loop.call_soon_threadsafe(self._enqueue, (topic, payload, received_at))

    def _enqueue(self, message: _Message) -> None:
        self._stats["received"] += 1
        self._stats["last_message_at"] = time.time()
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self._stats["dropped"] += 1
            MQTT_MESSAGES.labels(kind=self._kind(message[0]), status="dropped").inc()
            logger.warning("[INGRESS] Queue full (%d), dropped message on %s", self._queue_size, message[0])

    async def _consume(self) -> None:
        while True:
            topic, payload, received_at = await self._queue.get()
            try:
                await self.process(topic, payload, received_at)
            except Exception as e:
                self._stats["failed"] += 1
                logger.exception("[INGRESS] Error processing message on %s: %s", topic, e)
            finally:
                self._queue.task_done()

    async def process(self, topic: str, payload: bytes, received_at: Optional[datetime] = None) -> bool:
        """Procesa un mensaje ya desencolado.

        Returns:
            True si se entregó al núcleo
        """
        received_at = received_at or datetime.now(timezone.utc)
        kind = self._kind(topic)

        data = self._parse_json(payload, topic)
        if data is None:
            MQTT_MESSAGES.labels(kind=kind, status="invalid").inc()
            return False

        if kind == "sensors":
            delivered = await self._handle_telemetry(data, received_at)
        elif kind == "pump_status":
            delivered = await self._handle_pump_status(data, received_at)
        elif kind == "system_status":
            delivered = await self._handle_system_status(data, received_at)
        elif kind == "alerts":
            logger.warning("[INGRESS] Device alert: %s", data)
            delivered = True
        else:
            logger.debug("[INGRESS] Ignoring message on unknown topic %s", topic)
            delivered = False

        MQTT_MESSAGES.labels(kind=kind, status="accepted" if delivered else "invalid").inc()
        if delivered:
            self._stats["processed"] += 1
        return delivered

    async def _handle_telemetry(self, data: Any, received_at: datetime) -> bool:
        result = validate_telemetry(data, received_at)
        if not result.valid:
            self._stats["invalid"] += 1
            logger.warning("[INGRESS] Invalid telemetry dropped: %s", result.error)
            return False
        for warning in result.warnings:
            logger.debug("[INGRESS] %s", warning)

        await self._core.on_sensor_reading(result.reading)

        if self._stats["processed"] % 100 == 0:
            logger.info("[INGRESS] %s", self._stats)
        return True

    async def _handle_pump_status(self, data: Any, received_at: datetime) -> bool:
        try:
            payload = PumpStatusPayload.model_validate(data)
        except ValidationError as e:
            self._stats["invalid"] += 1
            logger.warning("[INGRESS] Invalid pump status dropped: %s", e.errors(include_url=False))
            return False
        await self._core.on_pump_status(payload.to_event(received_at))
        return True

    async def _handle_system_status(self, data: Any, received_at: datetime) -> bool:
        try:
            payload = SystemStatusPayload.model_validate(data)
        except ValidationError as e:
            self._stats["invalid"] += 1
            logger.warning("[INGRESS] Invalid system status dropped: %s", e.errors(include_url=False))
            return False
        await self._core.on_device_status(payload.to_event(received_at))
        return True

    def _parse_json(self, payload: bytes, topic: str) -> Optional[Any]:
        try:
            return orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            self._stats["invalid"] += 1
            logger.warning("[INGRESS] Invalid JSON: %s (topic=%s)", e, topic)
            return None

    def _kind(self, topic: str) -> str:
        return {
            self._topics.sensors: "sensors",
            self._topics.pump_status: "pump_status",
            self._topics.system_status: "system_status",
            self._topics.alerts: "alerts",
        }.get(topic, "unknown")

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def stats(self) -> Dict[str, Any]:
        return dict(self._stats)

    def health_check(self) -> Dict[str, Any]:
        return {
            "running": self._task is not None and not self._task.done(),
            "queue_depth": self.queue_depth,
            "queue_size": self._queue_size,
            **self._stats,
        }
