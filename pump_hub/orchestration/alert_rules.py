"""Reglas de alerta operativas y tabla de cooldown.

Las reglas son independientes: una misma lectura puede disparar varias.
El cooldown se aplica por clave; una clave en cooldown no suprime las demás.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ..core.domain import (
    Alert,
    AlertKey,
    AlertSeverity,
    AlertThresholds,
    SensorReading,
    SystemOperatingConfig,
)

logger = logging.getLogger(__name__)


class AlertCooldownTable:
    """Último disparo (epoch segundos) por clave de alerta.

    Las entradas nunca se borran; el conjunto de claves es fijo y pequeño.
    """

    def __init__(self, cooldown_seconds: float = 600.0, clock: Callable[[], float] = time.time):
        self._cooldown = cooldown_seconds
        self._clock = clock
        self._last_fired: Dict[str, float] = {}

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown

    def last_fired(self, key: AlertKey) -> Optional[float]:
        return self._last_fired.get(key.value)

    def try_acquire(self, key: AlertKey, now: Optional[float] = None) -> bool:
        """Registra el disparo si la clave no está en cooldown.

        Returns:
            True si la alerta debe despacharse
        """
        now = self._clock() if now is None else now
        last = self._last_fired.get(key.value)
        if last is not None and now - last <= self._cooldown:
            return False
        self._last_fired[key.value] = now
        return True

    def snapshot(self) -> Dict[str, float]:
        return dict(self._last_fired)


class AlertRules:
    """Evalúa una lectura contra los umbrales configurados."""

    def __init__(self, thresholds: Optional[AlertThresholds] = None):
        self.thresholds = thresholds or AlertThresholds()

    def evaluate(
        self,
        reading: SensorReading,
        previous_level: Optional[float],
        config: SystemOperatingConfig,
        now: Optional[datetime] = None,
    ) -> List[Alert]:
        """Devuelve las alertas candidatas, en orden de prioridad.

        Args:
            reading: Lectura actual (sin eficiencia aún)
            previous_level: Nivel de la lectura anterior, None si es la primera
            config: Configuración operativa vigente
            now: Marca de tiempo de las alertas (por defecto, ahora en UTC)
        """
        t = self.thresholds
        now = now or datetime.now(timezone.utc)
        alerts: List[Alert] = []

        def add(severity: AlertSeverity, key: AlertKey, message: str) -> None:
            logger.debug(
                "[RULES] %s matched: level=%.1f current=%.2f rms=%.3f pump=%s",
                key.value, reading.level, reading.current, reading.vibration.rms, reading.pump,
            )
            alerts.append(Alert(
                severity=severity,
                key=key,
                message=message,
                device=reading.device,
                level=reading.level,
                current=reading.current,
                vibration=reading.vibration.rms,
                pump=reading.pump,
                timestamp=now,
            ))

        if previous_level is not None and not reading.pump and previous_level > reading.level:
            drop = previous_level - reading.level
            if drop > t.leak_drop:
                add(
                    AlertSeverity.CRITICAL,
                    AlertKey.LEAK_DETECTION,
                    f"💧 ¡FUGA DETECTADA! El nivel bajó {drop:.1f}% con la bomba apagada.",
                )

        if reading.level < t.critical_level:
            add(
                AlertSeverity.CRITICAL,
                AlertKey.LOW_WATER_CRITICAL,
                f"⚠️ NIVEL CRÍTICO: agua en {reading.level:.1f}% - riesgo de desabastecimiento.",
            )

        if reading.level < config.low_water_threshold and not reading.pump and config.auto_mode:
            add(
                AlertSeverity.WARNING,
                AlertKey.LOW_WATER_PUMP_FAIL,
                f"📉 Nivel bajo ({reading.level:.1f}%) y la bomba no arrancó en modo automático.",
            )

        if reading.vibration.rms > t.vibration_rms:
            add(
                AlertSeverity.WARNING,
                AlertKey.HIGH_VIBRATION,
                f"📳 Vibración elevada: {reading.vibration.rms:.3f}G.",
            )

        if reading.current > t.current:
            add(
                AlertSeverity.WARNING,
                AlertKey.HIGH_CURRENT,
                f"⚡ Corriente alta: {reading.current:.2f}A.",
            )

        return alerts
