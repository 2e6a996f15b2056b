"""Control automático de la bomba por umbrales de nivel."""

from __future__ import annotations

from typing import Optional

from ..core.domain import (
    CommandSource,
    PumpAction,
    PumpCommand,
    SensorReading,
    SystemOperatingConfig,
)


class AutoPumpPolicy:
    """Enciende con nivel bajo y apaga con nivel alto, solo en modo automático.

    Sin histéresis adicional: los dos umbrales ya separan las transiciones.
    """

    def decide(self, reading: SensorReading, config: SystemOperatingConfig) -> Optional[PumpCommand]:
        if not config.auto_mode:
            return None

        if reading.level <= config.low_water_threshold and not reading.pump:
            return PumpCommand(PumpAction.ON, CommandSource.AUTO, reading.device)
        if reading.level >= config.high_water_threshold and reading.pump:
            return PumpCommand(PumpAction.OFF, CommandSource.AUTO, reading.device)
        return None
