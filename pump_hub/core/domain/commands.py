"""Comandos de control de la bomba y comandos remotos."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class PumpAction(str, Enum):
    ON = "on"
    OFF = "off"
    AUTO = "auto"
    MANUAL = "manual"

    @property
    def wire_token(self) -> str:
        """Token de texto plano que espera el ESP32."""
        return self.value.upper()


class CommandSource(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"
    REMOTE = "remote"


@dataclass(frozen=True)
class PumpCommand:
    action: PumpAction
    source: CommandSource
    device: Optional[str] = None


class RemoteCommandType(str, Enum):
    STATUS = "status"
    HELP = "help"
    SET_AUTO = "set_auto"
    SET_MANUAL = "set_manual"
    PUMP_ON = "pump_on"
    PUMP_OFF = "pump_off"

    @property
    def is_toggle(self) -> bool:
        return self in (RemoteCommandType.PUMP_ON, RemoteCommandType.PUMP_OFF)

    @property
    def is_mode_change(self) -> bool:
        return self in (RemoteCommandType.SET_AUTO, RemoteCommandType.SET_MANUAL)


class RemoteOrigin(str, Enum):
    """Canal por el que llegó un comando remoto."""
    CHAT = "chat"
    DASHBOARD = "dashboard"
    API = "api"


_ACTION_TO_COMMAND = {
    "on": RemoteCommandType.PUMP_ON,
    "off": RemoteCommandType.PUMP_OFF,
    "auto": RemoteCommandType.SET_AUTO,
    "manual": RemoteCommandType.SET_MANUAL,
}


@dataclass(frozen=True)
class RemoteCommand:
    type: RemoteCommandType
    origin: RemoteOrigin
    user: Optional[str] = None

    @classmethod
    def from_action(cls, action: str, origin: RemoteOrigin, user: Optional[str] = None) -> "RemoteCommand":
        """Traduce una acción del dashboard/API (on/off/auto/manual).

        Raises:
            ValueError: si la acción no es válida
        """
        command_type = _ACTION_TO_COMMAND.get((action or "").strip().lower())
        if command_type is None:
            raise ValueError(f"Invalid action: {action!r}")
        return cls(type=command_type, origin=origin, user=user)


@dataclass(frozen=True)
class CommandResult:
    success: bool
    message: str
    action: Optional[PumpAction] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "action": self.action.value if self.action else None,
        }
