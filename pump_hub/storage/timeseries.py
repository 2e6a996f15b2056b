"""Sink de series temporales sobre Redis Streams.

Cada lectura se guarda primero en el ring buffer en memoria y después se
publica con XADD al stream. Si Redis falla, el circuit breaker se abre, el
sink pasa a modo degradado y las consultas se sirven desde el buffer.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from redis.exceptions import RedisError

from ..core.domain import SensorReading
from ..core.exceptions import CircuitBreakerOpen
from ..core.ports import TimeSeriesSink
from ..metrics import SINK_DEGRADED, SINK_WRITES
from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from .connection import RedisConnection
from .ring_buffer import ReadingRingBuffer

logger = logging.getLogger(__name__)

DEFAULT_STREAM = "acquasys:readings"
DEFAULT_MAX_LEN = 100000
HEALTH_PROBE_INTERVAL = 10.0

STORE_ERRORS = (RedisError, OSError)


class RedisTimeSeriesSink(TimeSeriesSink):
    """Escritura durable best-effort con degradación a memoria.

    Responsabilidades:
    - XADD de lecturas (maxlen aproximado)
    - Consultas por ventana de tiempo con XREVRANGE
    - Flag ``degraded`` mantenido por las escrituras y un probe periódico
    """

    def __init__(
        self,
        connection: RedisConnection,
        stream_name: str = DEFAULT_STREAM,
        max_len: int = DEFAULT_MAX_LEN,
        breaker: Optional[CircuitBreaker] = None,
        buffer: Optional[ReadingRingBuffer] = None,
        health_interval: float = HEALTH_PROBE_INTERVAL,
    ):
        self._conn = connection
        self._stream = stream_name
        self._max_len = max_len
        self._breaker = breaker or CircuitBreaker(
            "timeseries", CircuitBreakerConfig(), failure_types=STORE_ERRORS,
        )
        self._buffer = buffer or ReadingRingBuffer()
        self._health_interval = health_interval
        self._health_task: Optional[asyncio.Task] = None
        self._degraded = True
        self._stats = {"written": 0, "failed": 0, "short_circuited": 0, "fallback_reads": 0}

    @property
    def stream_name(self) -> str:
        return self._stream

    @property
    def buffer(self) -> ReadingRingBuffer:
        return self._buffer

    @property
    def degraded(self) -> bool:
        return self._degraded

    def is_available(self) -> bool:
        return not self._degraded

    async def start(self) -> None:
        ok = await self._conn.connect()
        self._set_degraded(not ok)
        if not ok:
            logger.warning("[SINK] Redis unavailable at startup, serving from memory")
        self._health_task = asyncio.create_task(self._health_loop(), name="timeseries-health")

    async def stop(self) -> None:
        if self._health_task is not None:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None
        await self._conn.disconnect()
        logger.info("[SINK] Stopped. %s", self._stats)

    async def write(self, reading: SensorReading) -> bool:
        self._buffer.append(reading)

        client = self._conn.client
        if client is None:
            self._set_degraded(True)
            return False

        try:
            await self._breaker.call(lambda: client.xadd(
                self._stream,
                reading.to_stream_fields(),
                maxlen=self._max_len,
                approximate=True,
            ))
        except CircuitBreakerOpen as e:
            self._stats["short_circuited"] += 1
            SINK_WRITES.labels(status="short_circuit").inc()
            self._set_degraded(True)
            logger.debug("[SINK] %s", e)
            return False
        except STORE_ERRORS as e:
            self._stats["failed"] += 1
            SINK_WRITES.labels(status="failed").inc()
            self._set_degraded(True)
            logger.warning("[SINK] Write failed: %s", e)
            return False

        self._stats["written"] += 1
        SINK_WRITES.labels(status="ok").inc()
        self._set_degraded(False)
        return True

    async def query_recent(self, window: timedelta, limit: int = 50) -> List[SensorReading]:
        cutoff = datetime.now(timezone.utc) - window
        if limit <= 0:
            return []

        if not self._degraded and self._conn.client is not None:
            min_id = f"{int(cutoff.timestamp() * 1000)}-0"
            try:
                entries = await self._breaker.call(lambda: self._conn.client.xrevrange(
                    self._stream, max="+", min=min_id, count=limit,
                ))
            except CircuitBreakerOpen:
                self._set_degraded(True)
            except STORE_ERRORS as e:
                self._set_degraded(True)
                logger.warning("[SINK] Query failed, using memory buffer: %s", e)
            else:
                # El ID del stream es la hora de inserción; se filtra también por
                # hora de captura para coincidir con el buffer en modo degradado.
                readings = [SensorReading.from_stream_fields(fields) for _, fields in reversed(entries)]
                return [r for r in readings if r.timestamp >= cutoff]

        self._stats["fallback_reads"] += 1
        return self._buffer.since(cutoff, limit)

    async def latest(self) -> Optional[SensorReading]:
        buffered = self._buffer.latest()
        if buffered is not None or self._degraded or self._conn.client is None:
            return buffered

        try:
            entries = await self._breaker.call(lambda: self._conn.client.xrevrange(self._stream, count=1))
        except CircuitBreakerOpen:
            self._set_degraded(True)
            return None
        except STORE_ERRORS as e:
            self._set_degraded(True)
            logger.warning("[SINK] Latest query failed: %s", e)
            return None
        if not entries:
            return None
        _, fields = entries[0]
        return SensorReading.from_stream_fields(fields)

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self._health_interval)
            ok = await self._conn.ping()
            if ok and self._degraded and not self._breaker.is_open:
                logger.info("[SINK] Redis reachable again, leaving degraded mode")
                self._set_degraded(False)
            elif not ok:
                self._set_degraded(True)

    def _set_degraded(self, value: bool) -> None:
        if value != self._degraded:
            logger.info("[SINK] degraded=%s", value)
        self._degraded = value
        SINK_DEGRADED.set(1 if value else 0)

    def health_check(self) -> Dict[str, Any]:
        return {
            "backend": "redis",
            "stream": self._stream,
            "connected": self._conn.is_connected,
            "degraded": self._degraded,
            "buffered": len(self._buffer),
            "circuit_breaker": self._breaker.get_stats(),
            **self._stats,
        }
