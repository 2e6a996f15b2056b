"""Proyección de estado del sistema (solo lectura)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from ..core.domain import SensorReading, SystemOperatingConfig

LOCAL_TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M:%S"

OFFLINE_TEXT = "❌ <b>Sistema Offline</b>\nNo hay datos recientes del ESP32."


def format_local_timestamp(moment: datetime, tz_name: str) -> str:
    """dd/mm/YYYY, HH:MM:SS en la zona horaria indicada."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).strftime(LOCAL_TIMESTAMP_FORMAT)


@dataclass(frozen=True)
class StatusReport:
    online: bool
    mqtt_connected: bool
    storage_degraded: bool
    mode_label: str
    local_timestamp: str
    reading: Optional[SensorReading] = None
    efficiency: Optional[float] = None
    uptime_minutes: int = 0
    uptime_seconds: int = 0
    free_memory_kb: int = 0
    rssi: Optional[int] = None
    device_status: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def offline(
        cls,
        mqtt_connected: bool,
        storage_degraded: bool,
        config: SystemOperatingConfig,
        local_timestamp: str,
    ) -> "StatusReport":
        return cls(
            online=False,
            mqtt_connected=mqtt_connected,
            storage_degraded=storage_degraded,
            mode_label=config.mode_label,
            local_timestamp=local_timestamp,
        )

    @classmethod
    def from_reading(
        cls,
        reading: SensorReading,
        efficiency: float,
        mqtt_connected: bool,
        storage_degraded: bool,
        config: SystemOperatingConfig,
        local_timestamp: str,
        device_status: Optional[Dict[str, Any]] = None,
    ) -> "StatusReport":
        uptime = reading.runtime // 1000
        return cls(
            online=True,
            mqtt_connected=mqtt_connected,
            storage_degraded=storage_degraded,
            mode_label=config.mode_label,
            local_timestamp=local_timestamp,
            reading=reading,
            efficiency=efficiency,
            uptime_minutes=uptime // 60,
            uptime_seconds=uptime % 60,
            free_memory_kb=round(reading.heap / 1024),
            rssi=reading.rssi,
            device_status=dict(device_status or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": "online" if self.online else "offline",
            "mqttConnected": self.mqtt_connected,
            "storageDegraded": self.storage_degraded,
            "mode": self.mode_label,
            "timestamp": self.local_timestamp,
        }
        if not self.online:
            return data
        data.update({
            "reading": self.reading.to_dict(),
            "efficiency": self.efficiency,
            "uptime": {"minutes": self.uptime_minutes, "seconds": self.uptime_seconds},
            "freeMemoryKb": self.free_memory_kb,
            "rssi": self.rssi,
            "deviceStatus": self.device_status or None,
        })
        return data

    def to_text(self) -> str:
        """Mensaje HTML para el bot."""
        if not self.online:
            return OFFLINE_TEXT

        r = self.reading
        mqtt = "🟢 Conectado" if self.mqtt_connected else "🔴 Desconectado"
        pump = "🟢 ENCENDIDA" if r.pump else "🔴 APAGADA"
        lines = [
            "📊 <b>Estado del Sistema AcquaSys</b>",
            "",
            "📡 <b>Conectividad:</b>",
            f"• MQTT: {mqtt}",
            "• ESP32: 🟢 Online",
        ]
        if self.storage_degraded:
            lines.append("• Almacenamiento: 🟡 Degradado (memoria)")
        lines += [
            "",
            "💧 <b>Sensores:</b>",
            f"• Nivel: {r.level:.1f}%",
            f"• Temperatura: {r.temperature:.1f}°C",
            f"• Corriente: {r.current:.2f}A",
            f"• Vibración: {r.vibration.rms:.3f}G",
            "",
            "🚰 <b>Bomba:</b>",
            f"• Estado: {pump}",
            f"• Modo: {self.mode_label}",
            f"• Eficiencia: {self.efficiency:.1f}%",
            "",
            "🖥️ <b>ESP32:</b>",
            f"• Uptime: {self.uptime_minutes}min {self.uptime_seconds}s",
            f"• Memoria libre: {self.free_memory_kb}KB",
            f"• WiFi: {self.rssi}dBm",
            "",
            f"🕐 <b>Última actualización:</b> {self.local_timestamp}",
        ]
        return "\n".join(lines)
