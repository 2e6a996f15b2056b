"""Eficiencia operacional de la bomba con media móvil."""

from __future__ import annotations

from collections import deque
from typing import Deque, Optional, Tuple

from ..core.domain import SensorReading

IDEAL_POWER_W = 180.0
LINE_VOLTAGE_V = 220.0
IDLE_CURRENT_A = 0.1
HISTORY_SIZE = 20

VIBRATION_PENALTY_FROM = 1.0
VIBRATION_PENALTY_FACTOR = 10.0
TEMPERATURE_RANGE = (15.0, 40.0)
TEMPERATURE_NOMINAL = 27.5
TEMPERATURE_PENALTY_FACTOR = 0.5


def instantaneous_efficiency(reading: SensorReading) -> float:
    """Eficiencia instantánea en [0, 100].

    Bomba apagada o sin carga cuenta como 100.0 (no hay consumo que evaluar).
    """
    if not reading.pump or reading.current <= IDLE_CURRENT_A:
        return 100.0

    efficiency = IDEAL_POWER_W / (reading.current * LINE_VOLTAGE_V) * 100.0

    rms = reading.vibration.rms
    if rms > VIBRATION_PENALTY_FROM:
        efficiency -= (rms - VIBRATION_PENALTY_FROM) * VIBRATION_PENALTY_FACTOR

    low, high = TEMPERATURE_RANGE
    if reading.temperature < low or reading.temperature > high:
        efficiency -= abs(reading.temperature - TEMPERATURE_NOMINAL) * TEMPERATURE_PENALTY_FACTOR

    return max(0.0, min(100.0, efficiency))


class EfficiencyEstimator:
    """Filtro de media móvil sobre las últimas ``history_size`` muestras."""

    def __init__(self, history_size: int = HISTORY_SIZE):
        self._history: Deque[float] = deque(maxlen=history_size)

    def update(self, reading: SensorReading) -> float:
        """Agrega la muestra instantánea y devuelve la media actual."""
        self._history.append(instantaneous_efficiency(reading))
        return self.average()

    def average(self) -> Optional[float]:
        if not self._history:
            return None
        return sum(self._history) / len(self._history)

    @property
    def history(self) -> Tuple[float, ...]:
        return tuple(self._history)

    def __len__(self) -> int:
        return len(self._history)
