"""Alertas operativas de la bomba."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"
    INFO = "info"


class AlertKey(str, Enum):
    """Claves estables para la tabla de cooldown."""
    LEAK_DETECTION = "leak_detection"
    LOW_WATER_CRITICAL = "low_water_critical"
    LOW_WATER_PUMP_FAIL = "low_water_pump_fail"
    HIGH_VIBRATION = "high_vibration"
    HIGH_CURRENT = "high_current"
    SYSTEM = "system"


@dataclass(frozen=True)
class Alert:
    """Alerta transitoria: se construye, se despacha y se descarta."""
    severity: AlertSeverity
    key: AlertKey
    message: str
    device: str
    level: float
    current: float
    vibration: float
    pump: bool
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.severity.value,
            "key": self.key.value,
            "message": self.message,
            "device": self.device,
            "level": self.level,
            "current": self.current,
            "vibration": self.vibration,
            "pumpStatus": self.pump,
            "timestamp": self.timestamp.isoformat(),
        }
