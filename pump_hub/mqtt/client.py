"""Transporte MQTT hacia el ESP32 (paho-mqtt)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import paho.mqtt.client as mqtt

from ..core.ports import ConnectionState, DeviceTransport, MessageHandler

logger = logging.getLogger(__name__)

CONNECT_WAIT_SECONDS = 5.0
COMMAND_QOS = 1


class MQTTTransport(DeviceTransport):
    """Cliente MQTT para telemetría y comandos.

    Responsabilidades:
    - Conexión/reconexión al broker (hilo de red de paho)
    - Suscripción a topics, renovada en cada reconexión
    - Delegación de mensajes al handler
    - Publicación de comandos de bomba
    """

    def __init__(
        self,
        broker_host: str = "localhost",
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "acquasys-hub",
        keepalive: int = 60,
        reconnect_min_delay: int = 1,
        reconnect_max_delay: int = 30,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{int(time.time())}"
        self._keepalive = keepalive
        self._reconnect_delays = (reconnect_min_delay, reconnect_max_delay)

        self._client: Optional[mqtt.Client] = None
        self._state = ConnectionState.DISCONNECTED
        self._topics: List[str] = []
        self._message_handler: Optional[MessageHandler] = None
        self._stats = {
            "connects": 0,
            "disconnects": 0,
            "messages_received": 0,
            "published": 0,
            "publish_failed": 0,
        }

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    def subscribe(self, topics: Sequence[str]) -> None:
        for topic in topics:
            if topic not in self._topics:
                self._topics.append(topic)
        if self._client is not None and self._state is ConnectionState.CONNECTED:
            self._subscribe_all(self._client)

    async def start(self) -> None:
        """Inicia la conexión en segundo plano.

        No falla si el broker no responde: paho sigue reintentando y el
        estado queda en CONNECTING.
        """
        self._client = mqtt.Client(
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message
        self._client.reconnect_delay_set(*self._reconnect_delays)

        if self.username:
            self._client.username_pw_set(self.username, self.password)
        else:
            logger.warning("[MQTT] Connecting without authentication")

        logger.info("[MQTT] Connecting to %s:%d", self.broker_host, self.broker_port)
        self._state = ConnectionState.CONNECTING
        self._client.connect_async(self.broker_host, self.broker_port, keepalive=self._keepalive)
        self._client.loop_start()

        # Esperar conexión
        for _ in range(int(CONNECT_WAIT_SECONDS / 0.1)):
            if self._state is ConnectionState.CONNECTED:
                return
            await asyncio.sleep(0.1)
        logger.warning("[MQTT] Not connected after %.0fs, retrying in background", CONNECT_WAIT_SECONDS)

    async def stop(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            client.disconnect()
            client.loop_stop()
        self._state = ConnectionState.DISCONNECTED
        logger.info("[MQTT] Stopped. %s", self._stats)

    def publish(self, topic: str, payload: str) -> bool:
        if self._client is None or self._state is not ConnectionState.CONNECTED:
            logger.warning("[MQTT] Disconnected, publish to %s dropped", topic)
            self._stats["publish_failed"] += 1
            return False

        info = self._client.publish(topic, payload, qos=COMMAND_QOS)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error("[MQTT] Publish to %s failed: %s", topic, mqtt.error_string(info.rc))
            self._stats["publish_failed"] += 1
            return False

        logger.info("[MQTT] -> %s: %s", topic, payload)
        self._stats["published"] += 1
        return True

    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _subscribe_all(self, client: mqtt.Client) -> None:
        if not self._topics:
            return
        client.subscribe([(topic, COMMAND_QOS) for topic in self._topics])
        logger.info("[MQTT] Subscribed to %s", ", ".join(self._topics))

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            self._state = ConnectionState.CONNECTING
            logger.error("[MQTT] Connection refused: %s", reason_code)
            return
        self._state = ConnectionState.CONNECTED
        self._stats["connects"] += 1
        logger.info("[MQTT] Connected to broker %s:%d", self.broker_host, self.broker_port)
        self._subscribe_all(client)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._stats["disconnects"] += 1
        if self._client is None:
            return
        self._state = ConnectionState.CONNECTING
        logger.warning("[MQTT] Disconnected (%s), reconnecting", reason_code)

    def _on_message(self, client, userdata, msg):
        """Callback de mensaje (hilo de paho) - delega al handler."""
        self._stats["messages_received"] += 1
        if self._message_handler:
            self._message_handler(msg.topic, msg.payload)

    def health_check(self) -> Dict[str, Any]:
        return {
            "broker": f"{self.broker_host}:{self.broker_port}",
            "client_id": self.client_id,
            "state": self._state.value,
            "topics": list(self._topics),
            **self._stats,
        }
