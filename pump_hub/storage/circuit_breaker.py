"""Circuit breaker para proteger el almacenamiento de series temporales.

Variante asyncio: todo corre en el event loop, no hace falta lock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from ..core.exceptions import CircuitBreakerOpen

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Estados del circuit breaker."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuración del circuit breaker."""
    failure_threshold: int = 3
    recovery_timeout_seconds: float = 30.0
    success_threshold: int = 1


class CircuitBreaker:
    """Circuit breaker para recursos externos asíncronos.

    Uso:
        cb = CircuitBreaker("timeseries")

        try:
            await cb.call(lambda: client.xadd(stream, fields))
        except CircuitBreakerOpen:
            # Circuito abierto, usar fallback
            ...
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        failure_types: Tuple[Type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self._config = config or CircuitBreakerConfig()
        self._failure_types = failure_types
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float = 0

        logger.info(
            "CircuitBreaker '%s' initialized: failure_threshold=%d, "
            "recovery_timeout=%.1fs, success_threshold=%d",
            name,
            self._config.failure_threshold,
            self._config.recovery_timeout_seconds,
            self._config.success_threshold,
        )

    @property
    def state(self) -> CircuitState:
        self._check_state_transition()
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """Ejecuta una corrutina protegida por el circuit breaker.

        Raises:
            CircuitBreakerOpen: Si el circuito está abierto
        """
        self._check_state_transition()
        if self._state == CircuitState.OPEN:
            raise CircuitBreakerOpen(self.name, self._get_remaining_timeout())

        try:
            result = await func()
        except self._failure_types as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def _check_state_transition(self) -> None:
        if self._state == CircuitState.OPEN:
            elapsed = self._clock() - self._last_failure_time
            if elapsed >= self._config.recovery_timeout_seconds:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
                logger.info(
                    "CircuitBreaker '%s': OPEN -> HALF_OPEN (testing recovery)",
                    self.name,
                )

    def _on_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self._config.success_threshold:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
                logger.info("CircuitBreaker '%s': HALF_OPEN -> CLOSED (recovered)", self.name)
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def _on_failure(self, error: BaseException) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(
                "CircuitBreaker '%s': HALF_OPEN -> OPEN (test failed: %s)",
                self.name,
                str(error)[:100],
            )
        elif self._state == CircuitState.CLOSED and self._failure_count >= self._config.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "CircuitBreaker '%s': CLOSED -> OPEN (failures=%d, threshold=%d, error=%s)",
                self.name,
                self._failure_count,
                self._config.failure_threshold,
                str(error)[:100],
            )

    def _get_remaining_timeout(self) -> float:
        elapsed = self._clock() - self._last_failure_time
        return max(0.0, self._config.recovery_timeout_seconds - elapsed)

    def reset(self) -> None:
        """Resetea el circuit breaker a estado cerrado."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        logger.info("CircuitBreaker '%s': RESET to CLOSED", self.name)

    def get_stats(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "config": {
                "failure_threshold": self._config.failure_threshold,
                "recovery_timeout_seconds": self._config.recovery_timeout_seconds,
                "success_threshold": self._config.success_threshold,
            },
        }
