"""Validadores de payloads MQTT del ESP32.

Valida y transforma mensajes MQTT al modelo de dominio.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.domain import SensorReading, Vibration

logger = logging.getLogger(__name__)

# Epoch en milisegundos si supera este valor (año ~1973 en ms, ~5138 en s)
_MS_EPOCH_THRESHOLD = 1e11
# Anterior a 2000-01-01: reloj del ESP32 sin sincronizar (millis() desde boot)
_MIN_PLAUSIBLE_EPOCH = 946684800.0


def parse_device_timestamp(value: Union[int, float, str, None], received_at: datetime) -> datetime:
    """Normaliza la marca de tiempo enviada por el dispositivo.

    Acepta epoch en segundos o milisegundos, o ISO-8601. Si falta o no es
    plausible se usa la hora de recepción.
    """
    if value is None or value == "":
        return received_at

    if isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError:
            try:
                dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return received_at
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt if dt.timestamp() >= _MIN_PLAUSIBLE_EPOCH else received_at
        value = numeric

    seconds = float(value)
    if seconds > _MS_EPOCH_THRESHOLD:
        seconds /= 1000.0
    if not math.isfinite(seconds) or seconds < _MIN_PLAUSIBLE_EPOCH:
        return received_at
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        # Fuera del rango representable por la plataforma
        return received_at


def _finite(v: float) -> float:
    if not math.isfinite(v):
        raise ValueError("Value is NaN or infinite")
    return v


class VibrationPayload(BaseModel):
    x: float
    y: float
    z: float
    rms: Optional[float] = None

    @field_validator("x", "y", "z", "rms")
    @classmethod
    def validate_finite(cls, v):
        return v if v is None else _finite(v)

    def to_domain(self) -> Vibration:
        if self.rms is None:
            return Vibration.from_axes(self.x, self.y, self.z)
        return Vibration(x=self.x, y=self.y, z=self.z, rms=self.rms)


class TelemetryPayload(BaseModel):
    """Schema de telemetría del ESP32.

    Formato esperado:
    {
        "device": "acquasys_esp32",
        "timestamp": 1735689600000,
        "level": 63.2,
        "temperature": 26.1,
        "current": 2.4,
        "flowRate": 12.5,
        "pump": true,
        "vibration": {"x": 0.2, "y": 0.3, "z": 0.1, "rms": 0.22},
        "runtime": 3605000,
        "heap": 245760,
        "rssi": -61
    }
    """

    model_config = ConfigDict(populate_by_name=True)

    device: str = Field(..., min_length=1)
    timestamp: Optional[Union[float, str]] = None
    level: float
    temperature: float
    current: float
    flow_rate: float = Field(default=0.0, alias="flowRate")
    pump: bool
    vibration: VibrationPayload
    runtime: float = 0
    heap: float = 0
    rssi: float = 0

    @field_validator("level", "temperature", "current", "flow_rate", "runtime", "heap", "rssi")
    @classmethod
    def validate_finite(cls, v):
        return _finite(v)

    @field_validator("device")
    @classmethod
    def validate_device(cls, v):
        if not v.strip():
            raise ValueError("device is required")
        return v.strip()

    def to_reading(self, received_at: datetime) -> SensorReading:
        return SensorReading(
            device=self.device,
            timestamp=parse_device_timestamp(self.timestamp, received_at),
            level=self.level,
            temperature=self.temperature,
            current=self.current,
            flow_rate=self.flow_rate,
            pump=self.pump,
            vibration=self.vibration.to_domain(),
            runtime=int(self.runtime),
            heap=int(self.heap),
            rssi=int(self.rssi),
        )


class PumpStatusPayload(BaseModel):
    """Confirmación de estado de bomba publicada por el ESP32."""

    device_id: str
    pump_status: bool
    timestamp: Optional[Union[float, str]] = None
    water_level: Optional[float] = None
    trigger: Optional[str] = None

    def to_event(self, received_at: datetime) -> Dict[str, Any]:
        return {
            "device": self.device_id,
            "pump": self.pump_status,
            "level": self.water_level,
            "trigger": self.trigger,
            "timestamp": parse_device_timestamp(self.timestamp, received_at).isoformat(),
        }


class SystemStatusPayload(BaseModel):
    """Estado general del dispositivo (online/offline, firmware)."""

    device_id: str
    status: str
    timestamp: Optional[Union[float, str]] = None
    version: Optional[str] = None

    def to_event(self, received_at: datetime) -> Dict[str, Any]:
        return {
            "device": self.device_id,
            "status": self.status,
            "version": self.version,
            "timestamp": parse_device_timestamp(self.timestamp, received_at).isoformat(),
        }


@dataclass
class ValidationResult:
    """Resultado de validación."""

    valid: bool
    reading: Optional[SensorReading] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


def validate_telemetry(data: Dict[str, Any], received_at: Optional[datetime] = None) -> ValidationResult:
    """Valida un payload de telemetría.

    Args:
        data: Diccionario con datos del mensaje MQTT
        received_at: Hora de recepción (fallback de timestamp)

    Returns:
        ValidationResult con la lectura de dominio o el error
    """
    received_at = received_at or datetime.now(timezone.utc)
    warnings: List[str] = []

    if not isinstance(data, dict):
        return ValidationResult(valid=False, error=f"Expected JSON object, got {type(data).__name__}")

    if "flowRate" not in data and "flow_rate" in data:
        warnings.append("Used snake_case flow_rate instead of flowRate")
    if "efficiency" in data:
        warnings.append("Ignored device-provided efficiency")

    try:
        payload = TelemetryPayload.model_validate(data)
    except ValidationError as e:
        logger.warning("[MQTT_VALIDATOR] Validation failed: %s", e.errors(include_url=False))
        return ValidationResult(valid=False, error=str(e))

    reading = payload.to_reading(received_at)
    if reading.timestamp is received_at and payload.timestamp is not None:
        warnings.append(f"Implausible device timestamp {payload.timestamp!r}, using receive time")

    return ValidationResult(valid=True, reading=reading, warnings=warnings)
