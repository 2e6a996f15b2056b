"""Raíz de composición: construye y conecta los componentes del hub."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from common.config import Settings

from .core.domain import AlertThresholds, SystemOperatingConfig
from .core.ports import DeviceTransport, FanoutGateway, NotificationChannel, TimeSeriesSink
from .mqtt import IngressTopics, MQTTTransport, TelemetryIngress
from .notifications import TelegramClient, TelegramNotificationChannel
from .orchestration import OrchestrationCore
from .realtime import WebSocketFanoutGateway
from .storage import (
    CircuitBreaker,
    CircuitBreakerConfig,
    ReadingRingBuffer,
    RedisConnection,
    RedisTimeSeriesSink,
)
from .storage.timeseries import STORE_ERRORS

logger = logging.getLogger(__name__)


@dataclass
class HubContainer:
    """Componentes del proceso, construidos una sola vez.

    ``start()`` y ``stop()`` son el ciclo de vida explícito; los invoca el
    lifespan de FastAPI.
    """
    settings: Settings
    transport: DeviceTransport
    sink: TimeSeriesSink
    notifier: NotificationChannel
    fanout: FanoutGateway
    core: OrchestrationCore
    ingress: TelemetryIngress
    started: bool = field(default=False, init=False)

    async def start(self) -> None:
        missing = self.settings.missing_required()
        if missing:
            logger.warning("[HUB] Missing environment variables: %s", ", ".join(missing))

        await self.sink.start()
        await self.fanout.start()
        await self.ingress.start()
        await self.transport.start()
        await self.notifier.start()
        self.started = True
        logger.info("[HUB] Started")

    async def stop(self) -> None:
        for name, component in (
            ("notifier", self.notifier),
            ("transport", self.transport),
            ("ingress", self.ingress),
            ("fanout", self.fanout),
            ("sink", self.sink),
        ):
            try:
                await component.stop()
            except Exception as e:
                logger.exception("[HUB] Error stopping %s: %s", name, e)
        self.started = False
        logger.info("[HUB] Stopped")

    def health_check(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"core": self.core.stats}
        result["transport"] = self.transport.health_check()
        result["sink"] = self.sink.health_check()
        result["notifier"] = self.notifier.health_check()
        result["fanout"] = self.fanout.health_check()
        result["ingress"] = self.ingress.health_check()
        return result


def wire(
    settings: Settings,
    transport: DeviceTransport,
    sink: TimeSeriesSink,
    notifier: NotificationChannel,
    fanout: FanoutGateway,
) -> HubContainer:
    """Conecta colaboradores ya construidos con un núcleo nuevo."""
    core = OrchestrationCore(
        transport,
        sink,
        notifier,
        fanout,
        pump_control_topic=settings.topic_pump_control,
        config=SystemOperatingConfig(
            low_water_threshold=settings.low_water_threshold,
            high_water_threshold=settings.high_water_threshold,
        ),
        thresholds=AlertThresholds(
            leak_drop=settings.leak_drop_threshold,
            critical_level=settings.critical_level,
            vibration_rms=settings.vibration_alert_rms,
            current=settings.current_alert_amps,
            cooldown_seconds=settings.alert_cooldown_seconds,
        ),
        timezone_name=settings.timezone,
    )
    notifier.set_command_handler(core.on_remote_command)
    fanout.set_command_handler(core.on_remote_command)

    ingress = TelemetryIngress(
        transport,
        core,
        topics=IngressTopics(
            sensors=settings.topic_sensors,
            pump_status=settings.topic_pump_status,
            system_status=settings.topic_system_status,
            alerts=settings.topic_alerts,
        ),
        queue_size=settings.ingest_queue_size,
    )
    return HubContainer(
        settings=settings,
        transport=transport,
        sink=sink,
        notifier=notifier,
        fanout=fanout,
        core=core,
        ingress=ingress,
    )


def build_container(settings: Settings, telegram_client: Optional[TelegramClient] = None) -> HubContainer:
    """Construye los adaptadores reales (paho, Redis, Telegram, WebSocket)."""
    transport = MQTTTransport(
        broker_host=settings.mqtt_host,
        broker_port=settings.mqtt_port,
        username=settings.mqtt_user,
        password=settings.mqtt_password,
        client_id=settings.mqtt_client_id,
    )

    sink = RedisTimeSeriesSink(
        RedisConnection(settings.redis_url),
        stream_name=settings.ts_stream_name,
        max_len=settings.ts_stream_maxlen,
        breaker=CircuitBreaker(
            "timeseries",
            CircuitBreakerConfig(
                failure_threshold=settings.cb_failure_threshold,
                recovery_timeout_seconds=settings.cb_recovery_timeout_seconds,
                success_threshold=settings.cb_success_threshold,
            ),
            failure_types=STORE_ERRORS,
        ),
        buffer=ReadingRingBuffer(),
    )

    if telegram_client is None and settings.telegram_enabled:
        telegram_client = TelegramClient(settings.telegram_bot_token)
    notifier = TelegramNotificationChannel(
        telegram_client,
        settings.telegram_chat_id,
        timezone_name=settings.timezone,
    )

    fanout = WebSocketFanoutGateway(ping_interval=settings.ws_ping_interval_seconds)

    return wire(settings, transport, sink, notifier, fanout)
