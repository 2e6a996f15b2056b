"""Modelos de dominio del hub."""

from .alert import Alert, AlertKey, AlertSeverity
from .commands import (
    CommandResult,
    CommandSource,
    PumpAction,
    PumpCommand,
    RemoteCommand,
    RemoteCommandType,
    RemoteOrigin,
)
from .operating_config import AlertThresholds, SystemOperatingConfig
from .reading import SensorReading, Vibration

__all__ = [
    "Alert",
    "AlertKey",
    "AlertSeverity",
    "AlertThresholds",
    "CommandResult",
    "CommandSource",
    "PumpAction",
    "PumpCommand",
    "RemoteCommand",
    "RemoteCommandType",
    "RemoteOrigin",
    "SensorReading",
    "SystemOperatingConfig",
    "Vibration",
]
