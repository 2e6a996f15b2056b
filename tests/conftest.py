"""Fixtures compartidas: colaboradores falsos que implementan los puertos."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence, Tuple

import pytest

from pump_hub.core.domain import Alert, SensorReading, Vibration
from pump_hub.core.ports import (
    ConnectionState,
    DeviceTransport,
    FanoutGateway,
    NotificationChannel,
    TimeSeriesSink,
)
from pump_hub.orchestration import OrchestrationCore

PUMP_TOPIC = "acquasys/pump/control"
T0 = 1_760_000_000.0


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport(DeviceTransport):
    def __init__(self):
        self.published: List[Tuple[str, str]] = []
        self.publish_ok = True
        self.state = ConnectionState.CONNECTED
        self.topics: List[str] = []
        self.handler = None

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    def subscribe(self, topics: Sequence[str]) -> None:
        self.topics.extend(topics)

    def set_message_handler(self, handler) -> None:
        self.handler = handler

    def publish(self, topic: str, payload: str) -> bool:
        if not self.publish_ok:
            return False
        self.published.append((topic, payload))
        return True

    def connection_state(self) -> ConnectionState:
        return self.state

    @property
    def tokens(self) -> List[str]:
        return [payload for _, payload in self.published]


class FakeSink(TimeSeriesSink):
    def __init__(self):
        self.written: List[SensorReading] = []
        self.fail = False
        self.available = True

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def write(self, reading: SensorReading) -> bool:
        if self.fail:
            raise ConnectionError("store down")
        self.written.append(reading)
        return True

    async def query_recent(self, window: timedelta, limit: int = 50) -> List[SensorReading]:
        return self.written[-limit:]

    async def latest(self) -> Optional[SensorReading]:
        return self.written[-1] if self.written else None

    def is_available(self) -> bool:
        return self.available


class FakeNotifier(NotificationChannel):
    def __init__(self):
        self.alerts: List[Alert] = []
        self.messages: List[Tuple[str, str]] = []
        self.fail = False
        self.handler = None

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def send_alert(self, alert: Alert) -> bool:
        if self.fail:
            raise RuntimeError("telegram down")
        self.alerts.append(alert)
        return True

    async def send_message(self, chat_id: str, text: str) -> bool:
        self.messages.append((chat_id, text))
        return True

    async def send_test_alert(self) -> bool:
        return True

    def set_command_handler(self, handler) -> None:
        self.handler = handler


class FakeFanout(FanoutGateway):
    def __init__(self):
        self.events: List[Tuple[str, Any]] = []
        self.fail = False
        self.handler = None

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def broadcast(self, event_type: str, data: Any) -> int:
        if self.fail:
            raise RuntimeError("socket closed")
        self.events.append((event_type, data))
        return 1

    def set_command_handler(self, handler) -> None:
        self.handler = handler

    @property
    def subscriber_count(self) -> int:
        return 1

    def of_type(self, event_type: str) -> List[Any]:
        return [data for t, data in self.events if t == event_type]


def make_reading(**overrides) -> SensorReading:
    vibration = overrides.pop("vibration", None) or Vibration(x=0.2, y=0.3, z=0.1, rms=0.22)
    values = dict(
        device="acquasys_esp32",
        timestamp=datetime.fromtimestamp(T0, tz=timezone.utc),
        level=60.0,
        temperature=26.0,
        current=0.0,
        flow_rate=0.0,
        pump=False,
        vibration=vibration,
        runtime=125_000,
        heap=245_760,
        rssi=-61,
    )
    values.update(overrides)
    return SensorReading(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def fanout() -> FakeFanout:
    return FakeFanout()


@pytest.fixture
def core(transport, sink, notifier, fanout, clock) -> OrchestrationCore:
    return OrchestrationCore(
        transport,
        sink,
        notifier,
        fanout,
        pump_control_topic=PUMP_TOPIC,
        clock=clock,
    )


@pytest.fixture
def reading_factory():
    return make_reading
