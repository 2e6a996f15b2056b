"""Estado operativo mutable del sistema y umbrales de alerta."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .commands import CommandSource


@dataclass
class SystemOperatingConfig:
    """Configuración operativa del proceso.

    Solo la muta el OrchestrationCore (comandos remotos). La leen la política
    automática y el reporte de estado.
    """
    auto_mode: bool = True
    low_water_threshold: float = 20.0
    high_water_threshold: float = 95.0
    last_command_source: Optional[CommandSource] = None

    def __post_init__(self) -> None:
        if self.low_water_threshold >= self.high_water_threshold:
            raise ValueError(
                f"low_water_threshold ({self.low_water_threshold}) must be below "
                f"high_water_threshold ({self.high_water_threshold})"
            )

    @property
    def mode_label(self) -> str:
        return "Automático" if self.auto_mode else "Manual"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pumpMode": "auto" if self.auto_mode else "manual",
            "pumpAutoMode": self.auto_mode,
            "lowWaterThreshold": self.low_water_threshold,
            "highWaterThreshold": self.high_water_threshold,
            "lastCommandSource": self.last_command_source.value if self.last_command_source else None,
        }


@dataclass(frozen=True)
class AlertThresholds:
    """Umbrales de las reglas de alerta (configurables por entorno)."""
    leak_drop: float = 1.0
    critical_level: float = 10.0
    vibration_rms: float = 2.5
    current: float = 5.0
    cooldown_seconds: float = 600.0
