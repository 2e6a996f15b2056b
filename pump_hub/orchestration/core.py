"""Orquestación de eventos del hub.

Recibe lecturas, estados del dispositivo y comandos remotos; aplica el
control automático, las alertas con cooldown y la eficiencia; propaga a
almacenamiento, dashboard y chat.

Todo el estado mutable (historial de eficiencia, cooldowns, configuración
operativa) se toca solo desde el event loop, por eso no hay locks.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.domain import (
    Alert,
    AlertThresholds,
    CommandResult,
    CommandSource,
    PumpAction,
    PumpCommand,
    RemoteCommand,
    RemoteCommandType,
    SensorReading,
    SystemOperatingConfig,
)
from ..core.exceptions import HubConfigurationError
from ..core.ports import (
    ConnectionState,
    DeviceTransport,
    FanoutGateway,
    NotificationChannel,
    TimeSeriesSink,
)
from ..metrics import (
    ALERTS_DISPATCHED,
    ALERTS_SUPPRESSED,
    PUMP_COMMANDS,
    READINGS_PROCESSED,
)
from .alert_rules import AlertCooldownTable, AlertRules
from .efficiency import EfficiencyEstimator, instantaneous_efficiency
from .pump_policy import AutoPumpPolicy
from .status import StatusReport, format_local_timestamp

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "🤖 <b>Bot AcquaSys - Comandos:</b>\n"
    "📊 /status - Estado del sistema\n"
    "🔧 /manual - Control manual\n"
    "🤖 /auto - Control automático\n"
    "🚰 /ligar y /desligar - Control de la bomba\n"
    "❓ /ayuda - Muestra este mensaje"
)


def _require(obj: Any, port: type, name: str) -> Any:
    if not isinstance(obj, port):
        raise HubConfigurationError(
            f"{name} must implement {port.__name__}, got {type(obj).__name__}"
        )
    return obj


class OrchestrationCore:
    """Núcleo de orquestación.

    Colaboradores (inyectados, validados al construir):
    - DeviceTransport: publicación de comandos al ESP32
    - TimeSeriesSink: escritura durable y consultas
    - NotificationChannel: alertas por chat
    - FanoutGateway: difusión a dashboards
    """

    def __init__(
        self,
        transport: DeviceTransport,
        sink: TimeSeriesSink,
        notifier: NotificationChannel,
        fanout: FanoutGateway,
        *,
        pump_control_topic: str,
        config: Optional[SystemOperatingConfig] = None,
        thresholds: Optional[AlertThresholds] = None,
        timezone_name: str = "America/Sao_Paulo",
        clock: Callable[[], float] = time.time,
    ):
        self._transport = _require(transport, DeviceTransport, "transport")
        self._sink = _require(sink, TimeSeriesSink, "sink")
        self._notifier = _require(notifier, NotificationChannel, "notifier")
        self._fanout = _require(fanout, FanoutGateway, "fanout")

        self._topic = pump_control_topic
        self._timezone = timezone_name
        self._clock = clock

        self.config = config or SystemOperatingConfig()
        thresholds = thresholds or AlertThresholds()
        self._policy = AutoPumpPolicy()
        self._rules = AlertRules(thresholds)
        self._cooldowns = AlertCooldownTable(thresholds.cooldown_seconds, clock=clock)
        self._efficiency = EfficiencyEstimator()

        self._previous_level: Optional[float] = None
        self._latest: Optional[SensorReading] = None
        self._device_status: Dict[str, Any] = {}

        self._stats = {
            "readings": 0,
            "alerts_dispatched": 0,
            "alerts_suppressed": 0,
            "commands_published": 0,
            "commands_failed": 0,
            "commands_rejected": 0,
        }

    # ------------------------------------------------------------------
    # Telemetría
    # ------------------------------------------------------------------

    async def on_sensor_reading(self, reading: SensorReading) -> SensorReading:
        """Procesa una lectura y devuelve la versión enriquecida con eficiencia."""
        command = self._policy.decide(reading, self.config)
        if command is not None:
            logger.info(
                "[CORE] AUTO: level=%.1f%% pump=%s -> %s",
                reading.level, reading.pump, command.action.wire_token,
            )
            self._issue(command)

        await self._dispatch_alerts(reading)

        efficiency = self._efficiency.update(reading)
        enriched = reading.with_efficiency(efficiency)
        self._latest = enriched

        await asyncio.gather(
            self._guarded("sink write", self._sink.write(enriched)),
            self._guarded("sensorData broadcast", self._fanout.broadcast("sensorData", enriched.to_dict())),
        )

        self._previous_level = reading.level
        self._stats["readings"] += 1
        READINGS_PROCESSED.inc()
        return enriched

    async def on_pump_status(self, status: Dict[str, Any]) -> None:
        """Estado de bomba reportado por el dispositivo."""
        logger.info(
            "[CORE] Pump status from %s: %s (trigger=%s)",
            status.get("device"), status.get("pump"), status.get("trigger"),
        )
        await self._guarded("pumpStatus broadcast", self._fanout.broadcast("pumpStatus", status))

    async def on_device_status(self, status: Dict[str, Any]) -> None:
        """Estado general del dispositivo (online, versión de firmware)."""
        self._device_status = dict(status)
        logger.info("[CORE] Device status: %s", status)

    async def _dispatch_alerts(self, reading: SensorReading) -> None:
        now = self._clock()
        candidates = self._rules.evaluate(
            reading,
            self._previous_level,
            self.config,
            now=datetime.fromtimestamp(now, tz=timezone.utc),
        )

        pending = []
        for alert in candidates:
            if not self._cooldowns.try_acquire(alert.key, now):
                self._stats["alerts_suppressed"] += 1
                ALERTS_SUPPRESSED.labels(key=alert.key.value).inc()
                logger.debug("[CORE] Alert %s in cooldown, skipped", alert.key.value)
                continue
            self._stats["alerts_dispatched"] += 1
            ALERTS_DISPATCHED.labels(key=alert.key.value).inc()
            logger.warning("[CORE] Alert %s (%s): %s", alert.key.value, alert.severity.value, alert.message)
            pending.extend(self._alert_dispatches(alert))

        if pending:
            await asyncio.gather(*pending)

    def _alert_dispatches(self, alert: Alert) -> List[Awaitable[Any]]:
        return [
            self._guarded(f"alert {alert.key.value} notify", self._notifier.send_alert(alert)),
            self._guarded(f"alert {alert.key.value} broadcast", self._fanout.broadcast("systemAlert", alert.to_dict())),
        ]

    # ------------------------------------------------------------------
    # Comandos remotos
    # ------------------------------------------------------------------

    async def on_remote_command(self, command: RemoteCommand) -> CommandResult:
        """Punto de entrada común para chat, dashboard y API HTTP."""
        logger.info(
            "[CORE] Remote command %s from %s (user=%s)",
            command.type.value, command.origin.value, command.user,
        )

        if command.type is RemoteCommandType.STATUS:
            report = await self.build_status_report()
            return CommandResult(True, report.to_text())

        if command.type is RemoteCommandType.HELP:
            return CommandResult(True, HELP_TEXT)

        if command.type.is_mode_change:
            return await self._change_mode(command.type is RemoteCommandType.SET_AUTO)

        action = PumpAction.ON if command.type is RemoteCommandType.PUMP_ON else PumpAction.OFF
        if self.config.auto_mode:
            self._stats["commands_rejected"] += 1
            return CommandResult(
                False,
                "⚠️ <b>¡Sistema en modo automático!</b>\nUse /manual para tomar el control.",
                action,
            )

        published = self._issue(PumpCommand(action, CommandSource.MANUAL, self._device_name()))
        if not published:
            return CommandResult(
                False,
                "❌ <b>¡Error!</b> No fue posible enviar el comando al ESP32.",
                action,
            )

        await self._guarded("pumpStatus broadcast", self._fanout.broadcast("pumpStatus", {
            "device": self._device_name(),
            "pump": action is PumpAction.ON,
            "source": CommandSource.MANUAL.value,
            "timestamp": datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
        }))
        label = "ENCENDIDA" if action is PumpAction.ON else "APAGADA"
        return CommandResult(True, f"✅ <b>Bomba {label}</b> por comando manual.", action)

    async def _change_mode(self, auto: bool) -> CommandResult:
        self.config.auto_mode = auto
        self.config.last_command_source = CommandSource.REMOTE
        action = PumpAction.AUTO if auto else PumpAction.MANUAL

        # El cambio de modo es local; el aviso al dispositivo es best-effort.
        self._issue(PumpCommand(action, CommandSource.REMOTE, self._device_name()), record_source=False)
        await self._guarded("systemConfig broadcast", self._fanout.broadcast("systemConfig", self.config_snapshot()))
        return CommandResult(True, f"✅ <b>Modo {self.config.mode_label} activado.</b>", action)

    def _issue(self, command: PumpCommand, record_source: bool = True) -> bool:
        token = command.action.wire_token
        ok = self._transport.publish(self._topic, token)
        status = "ok" if ok else "failed"
        PUMP_COMMANDS.labels(action=command.action.value, source=command.source.value, status=status).inc()
        if ok:
            self._stats["commands_published"] += 1
            if record_source:
                self.config.last_command_source = command.source
            logger.info("[CORE] Command %s sent (source=%s)", token, command.source.value)
        else:
            self._stats["commands_failed"] += 1
            logger.error("[CORE] Command %s could not be published", token)
        return ok

    # ------------------------------------------------------------------
    # Proyecciones de lectura
    # ------------------------------------------------------------------

    async def latest_reading(self) -> Optional[SensorReading]:
        if self._latest is not None:
            return self._latest
        return await self._guarded("sink latest", self._sink.latest())

    async def history(self, window: timedelta, limit: int = 50) -> List[SensorReading]:
        readings = await self._guarded("sink query", self._sink.query_recent(window, limit))
        return readings or []

    async def build_status_report(self) -> StatusReport:
        """Instantánea de estado; no agrega muestras al historial."""
        mqtt_connected = self._transport.connection_state() is ConnectionState.CONNECTED
        degraded = not self._sink.is_available()
        local_ts = format_local_timestamp(
            datetime.fromtimestamp(self._clock(), tz=timezone.utc), self._timezone
        )

        reading = await self.latest_reading()
        if reading is None:
            return StatusReport.offline(mqtt_connected, degraded, self.config, local_ts)

        efficiency = self._efficiency.average()
        if efficiency is None:
            efficiency = reading.efficiency if reading.efficiency is not None else instantaneous_efficiency(reading)

        return StatusReport.from_reading(
            reading,
            efficiency,
            mqtt_connected,
            degraded,
            self.config,
            local_ts,
            device_status=self._device_status,
        )

    def config_snapshot(self) -> Dict[str, Any]:
        return self.config.to_dict()

    @property
    def device_status(self) -> Dict[str, Any]:
        return dict(self._device_status)

    @property
    def efficiency_history(self):
        return self._efficiency.history

    @property
    def cooldowns(self) -> AlertCooldownTable:
        return self._cooldowns

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "auto_mode": self.config.auto_mode,
            "efficiency_samples": len(self._efficiency),
            "has_reading": self._latest is not None,
        }

    # ------------------------------------------------------------------

    def _device_name(self) -> Optional[str]:
        return self._latest.device if self._latest else None

    async def _guarded(self, label: str, aw: Awaitable[Any]) -> Any:
        """Ejecuta una salida best-effort: registra el fallo y sigue."""
        try:
            return await aw
        except Exception as e:
            logger.exception("[CORE] %s failed: %s", label, e)
            return None
