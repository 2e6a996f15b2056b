"""Conexión asíncrona a Redis."""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisConnection:
    """Gestiona el cliente Redis y su estado de conexión."""

    def __init__(self, url: str = "redis://localhost:6379/0"):
        self._url = url
        self._client: Optional[redis.Redis] = None
        self._connected = False

    @property
    def client(self) -> Optional[redis.Redis]:
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def safe_url(self) -> str:
        return self._url.split("@")[-1]

    async def connect(self) -> bool:
        """Crea el cliente y verifica con PING.

        El cliente se conserva aunque el PING falle: redis-py reconecta solo
        en la siguiente operación.
        """
        if self._client is None:
            self._client = redis.Redis.from_url(
                self._url,
                decode_responses=False,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
        return await self.ping()

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            if self._connected:
                logger.warning("[REDIS] Connection lost: %s", e)
            self._connected = False
            return False
        if not self._connected:
            logger.info("[REDIS] Connected: %s", self.safe_url)
        self._connected = True
        return True

    async def disconnect(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
            except (RedisError, OSError) as e:
                logger.warning("[REDIS] Close error: %s", e)
        self._client = None
        self._connected = False
