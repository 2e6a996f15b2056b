"""Abstract interfaces for the collaborators of the orchestration core.

The core only depends on these capability sets. Every collaborator must
implement the whole set; a missing method fails at instantiation time
instead of at call time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .domain import Alert, CommandResult, RemoteCommand, SensorReading

MessageHandler = Callable[[str, bytes], None]
CommandHandler = Callable[[RemoteCommand], Awaitable[CommandResult]]


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"


class Lifecycle(ABC):
    """Explicit start/stop driven by the composition root."""

    @abstractmethod
    async def start(self) -> None:
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass

    def health_check(self) -> Dict[str, Any]:
        return {}


class DeviceTransport(Lifecycle):
    """Pub/sub transport used to reach the device (MQTT).

    Implementations:
    - MQTTTransport: paho-mqtt client
    """

    @abstractmethod
    def subscribe(self, topics: Sequence[str]) -> None:
        """Register topics; re-subscribed automatically on reconnect."""
        pass

    @abstractmethod
    def set_message_handler(self, handler: MessageHandler) -> None:
        """Handler called as ``handler(topic, payload)`` for each message.

        May be invoked from the transport's network thread.
        """
        pass

    @abstractmethod
    def publish(self, topic: str, payload: str) -> bool:
        """Publish a message.

        Returns:
            True if handed to the broker client, False if disconnected or failed
        """
        pass

    @abstractmethod
    def connection_state(self) -> ConnectionState:
        pass


class TimeSeriesSink(Lifecycle):
    """Durable write path for readings with degraded in-memory fallback."""

    @abstractmethod
    async def write(self, reading: SensorReading) -> bool:
        pass

    @abstractmethod
    async def query_recent(self, window: timedelta, limit: int = 50) -> List[SensorReading]:
        """Readings captured within ``window``, oldest first, at most ``limit``."""
        pass

    @abstractmethod
    async def latest(self) -> Optional[SensorReading]:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True when the backing store is reachable (not degraded)."""
        pass


class NotificationChannel(Lifecycle):
    """Outbound alerts plus inbound remote commands (chat bot)."""

    @abstractmethod
    async def send_alert(self, alert: Alert) -> bool:
        pass

    @abstractmethod
    async def send_message(self, chat_id: str, text: str) -> bool:
        pass

    @abstractmethod
    async def send_test_alert(self) -> bool:
        """Connectivity check plus an informational alert."""
        pass

    @abstractmethod
    def set_command_handler(self, handler: CommandHandler) -> None:
        pass


class FanoutGateway(Lifecycle):
    """Live dashboard subscribers."""

    @abstractmethod
    async def broadcast(self, event_type: str, data: Any) -> int:
        """Send an envelope to every subscriber.

        Returns:
            Number of subscribers that received the event
        """
        pass

    @abstractmethod
    def set_command_handler(self, handler: CommandHandler) -> None:
        pass

    @property
    @abstractmethod
    def subscriber_count(self) -> int:
        pass
