"""Excepciones del hub."""

from __future__ import annotations


class HubConfigurationError(Exception):
    """Cableado inválido detectado al construir o arrancar componentes."""


class CircuitBreakerOpen(Exception):
    """Excepción cuando el circuito está abierto."""

    def __init__(self, name: str, remaining_seconds: float):
        self.name = name
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"Circuit breaker '{name}' is OPEN. "
            f"Retry in {remaining_seconds:.1f}s"
        )
