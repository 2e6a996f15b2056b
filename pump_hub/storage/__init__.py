"""Almacenamiento de series temporales (Redis Streams + buffer en memoria)."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from .connection import RedisConnection
from .ring_buffer import ReadingRingBuffer
from .timeseries import RedisTimeSeriesSink

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "ReadingRingBuffer",
    "RedisConnection",
    "RedisTimeSeriesSink",
]
