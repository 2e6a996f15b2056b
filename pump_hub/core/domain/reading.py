"""Modelo de dominio para lecturas del dispositivo de bombeo."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Vibration:
    """Vibración triaxial (G) y su magnitud RMS."""
    x: float
    y: float
    z: float
    rms: float

    @classmethod
    def from_axes(cls, x: float, y: float, z: float) -> "Vibration":
        rms = math.sqrt((x * x + y * y + z * z) / 3.0)
        return cls(x=x, y=y, z=z, rms=rms)


@dataclass(frozen=True)
class SensorReading:
    """Lectura de telemetría - modelo canónico de dominio.

    Una instancia por mensaje MQTT. Es inmutable: la eficiencia la adjunta
    el core con ``with_efficiency()``, que devuelve una copia.
    """
    device: str
    timestamp: datetime
    level: float
    temperature: float
    current: float
    flow_rate: float
    pump: bool
    vibration: Vibration
    runtime: int
    heap: int
    rssi: int
    efficiency: Optional[float] = None

    def with_efficiency(self, efficiency: float) -> "SensorReading":
        return replace(self, efficiency=efficiency)

    def to_dict(self) -> Dict[str, Any]:
        """Representación JSON (camelCase, igual que el payload del ESP32)."""
        return {
            "device": self.device,
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "temperature": self.temperature,
            "current": self.current,
            "flowRate": self.flow_rate,
            "pump": self.pump,
            "vibration": asdict(self.vibration),
            "runtime": self.runtime,
            "heap": self.heap,
            "rssi": self.rssi,
            "efficiency": self.efficiency,
        }

    def to_stream_fields(self) -> Dict[str, str]:
        """Convierte a formato Redis Stream (todos los valores como str)."""
        fields = {
            "device": self.device,
            "timestamp": str(self.timestamp.timestamp()),
            "level": str(self.level),
            "temperature": str(self.temperature),
            "current": str(self.current),
            "flow_rate": str(self.flow_rate),
            "pump": "1" if self.pump else "0",
            "vib_x": str(self.vibration.x),
            "vib_y": str(self.vibration.y),
            "vib_z": str(self.vibration.z),
            "vib_rms": str(self.vibration.rms),
            "runtime": str(self.runtime),
            "heap": str(self.heap),
            "rssi": str(self.rssi),
        }
        if self.efficiency is not None:
            fields["efficiency"] = str(self.efficiency)
        return fields

    @classmethod
    def from_stream_fields(cls, fields: Dict[Any, Any]) -> "SensorReading":
        """Reconstruye una lectura desde una entrada de Redis Stream."""
        data = {
            (k.decode() if isinstance(k, bytes) else k): (v.decode() if isinstance(v, bytes) else v)
            for k, v in fields.items()
        }
        efficiency = data.get("efficiency")
        return cls(
            device=data["device"],
            timestamp=datetime.fromtimestamp(float(data["timestamp"]), tz=timezone.utc),
            level=float(data["level"]),
            temperature=float(data["temperature"]),
            current=float(data["current"]),
            flow_rate=float(data["flow_rate"]),
            pump=data["pump"] == "1",
            vibration=Vibration(
                x=float(data["vib_x"]),
                y=float(data["vib_y"]),
                z=float(data["vib_z"]),
                rms=float(data["vib_rms"]),
            ),
            runtime=int(data["runtime"]),
            heap=int(data["heap"]),
            rssi=int(data["rssi"]),
            efficiency=float(efficiency) if efficiency is not None else None,
        )
