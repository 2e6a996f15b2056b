"""Tests del ingreso MQTT: validadores y enrutamiento por topic.

Ejecutar:
    pytest tests/test_ingress.py -v
"""

import asyncio
import math
from datetime import datetime, timezone

import orjson
import pytest

from pump_hub.mqtt.ingress import IngressTopics, TelemetryIngress
from pump_hub.mqtt.validators import parse_device_timestamp, validate_telemetry

RECEIVED = datetime(2025, 10, 9, 12, 0, 0, tzinfo=timezone.utc)


def telemetry(**overrides):
    data = {
        "device": "acquasys_esp32",
        "timestamp": 1760011200000,
        "level": 63.2,
        "temperature": 26.1,
        "current": 2.4,
        "flowRate": 12.5,
        "pump": True,
        "vibration": {"x": 0.2, "y": 0.3, "z": 0.1, "rms": 0.22},
        "runtime": 3605000,
        "heap": 245760,
        "rssi": -61,
    }
    data.update(overrides)
    return data


# =============================================================================
# TIMESTAMPS
# =============================================================================

class TestParseDeviceTimestamp:

    def test_milliseconds(self):
        ts = parse_device_timestamp(1760011200000, RECEIVED)
        assert ts == datetime(2025, 10, 9, 12, 0, 0, tzinfo=timezone.utc)

    def test_seconds(self):
        ts = parse_device_timestamp(1760011200, RECEIVED)
        assert ts == datetime(2025, 10, 9, 12, 0, 0, tzinfo=timezone.utc)

    def test_iso_string(self):
        ts = parse_device_timestamp("2025-10-09T09:00:00-03:00", RECEIVED)
        assert ts == RECEIVED

    def test_uptime_millis_falls_back_to_receive_time(self):
        """millis() desde el boot no es una fecha: se usa la hora de recepción."""
        assert parse_device_timestamp(3605000, RECEIVED) is RECEIVED

    @pytest.mark.parametrize("value", [None, "", "ayer", float("inf"), 1e20, "1e20"])
    def test_unusable_values(self, value):
        assert parse_device_timestamp(value, RECEIVED) is RECEIVED


# =============================================================================
# TELEMETRÍA
# =============================================================================

class TestValidateTelemetry:

    def test_valid_payload(self):
        result = validate_telemetry(telemetry(), RECEIVED)

        assert result.valid
        assert result.reading.flow_rate == 12.5
        assert result.reading.vibration.rms == 0.22
        assert result.reading.efficiency is None
        assert result.warnings == []

    def test_rms_derived_from_axes(self):
        result = validate_telemetry(telemetry(vibration={"x": 1.0, "y": 1.0, "z": 1.0}), RECEIVED)
        assert result.valid
        assert result.reading.vibration.rms == pytest.approx(1.0)

    def test_missing_field(self):
        data = telemetry()
        del data["level"]
        result = validate_telemetry(data, RECEIVED)
        assert not result.valid
        assert "level" in result.error

    def test_nan_rejected(self):
        result = validate_telemetry(telemetry(current=math.nan), RECEIVED)
        assert not result.valid

    def test_not_an_object(self):
        result = validate_telemetry([1, 2, 3], RECEIVED)
        assert not result.valid
        assert "list" in result.error

    def test_device_efficiency_is_ignored(self):
        result = validate_telemetry(telemetry(efficiency=12.0), RECEIVED)
        assert result.valid
        assert result.reading.efficiency is None
        assert any("efficiency" in w for w in result.warnings)

    def test_snake_case_flow_rate_accepted_with_warning(self):
        data = telemetry()
        data["flow_rate"] = data.pop("flowRate")
        result = validate_telemetry(data, RECEIVED)
        assert result.valid
        assert result.reading.flow_rate == 12.5
        assert result.warnings

    def test_implausible_timestamp_warns(self):
        result = validate_telemetry(telemetry(timestamp=1234), RECEIVED)
        assert result.valid
        assert result.reading.timestamp is RECEIVED
        assert any("timestamp" in w for w in result.warnings)

    def test_out_of_range_timestamp_is_not_an_error(self):
        result = validate_telemetry(telemetry(timestamp=1e20), RECEIVED)
        assert result.valid
        assert result.reading.timestamp is RECEIVED


# =============================================================================
# ENRUTAMIENTO
# =============================================================================

@pytest.fixture
def ingress(transport, core):
    return TelemetryIngress(transport, core, topics=IngressTopics(), queue_size=2)


class TestIngressRouting:

    @pytest.mark.asyncio
    async def test_sensor_message_reaches_core(self, ingress, sink, fanout):
        delivered = await ingress.process("acquasys/sensors", orjson.dumps(telemetry()), RECEIVED)

        assert delivered is True
        assert len(sink.written) == 1
        assert len(fanout.of_type("sensorData")) == 1
        assert ingress.stats["processed"] == 1

    @pytest.mark.asyncio
    async def test_invalid_json_dropped(self, ingress, sink):
        delivered = await ingress.process("acquasys/sensors", b"{not json", RECEIVED)

        assert delivered is False
        assert sink.written == []
        assert ingress.stats["invalid"] == 1

    @pytest.mark.asyncio
    async def test_invalid_telemetry_dropped(self, ingress, sink):
        delivered = await ingress.process("acquasys/sensors", orjson.dumps({"device": "x"}), RECEIVED)
        assert delivered is False
        assert sink.written == []

    @pytest.mark.asyncio
    async def test_pump_status_broadcast(self, ingress, fanout):
        payload = orjson.dumps({
            "device_id": "acquasys_esp32",
            "pump_status": True,
            "water_level": 18.0,
            "trigger": "auto",
        })
        assert await ingress.process("acquasys/pump/status", payload, RECEIVED)

        [event] = fanout.of_type("pumpStatus")
        assert event["pump"] is True
        assert event["trigger"] == "auto"
        assert event["timestamp"] == RECEIVED.isoformat()

    @pytest.mark.asyncio
    async def test_pump_status_with_out_of_range_timestamp(self, ingress, fanout):
        payload = orjson.dumps({"device_id": "acquasys_esp32", "pump_status": False, "timestamp": 1e20})
        assert await ingress.process("acquasys/pump/status", payload, RECEIVED)
        assert fanout.of_type("pumpStatus")[0]["timestamp"] == RECEIVED.isoformat()
        assert ingress.stats["failed"] == 0

    @pytest.mark.asyncio
    async def test_system_status_stored(self, ingress, core):
        payload = orjson.dumps({"device_id": "acquasys_esp32", "status": "online", "version": "2.1.0"})
        assert await ingress.process("acquasys/system/status", payload, RECEIVED)
        assert core.device_status["version"] == "2.1.0"

    @pytest.mark.asyncio
    async def test_unknown_topic_ignored(self, ingress):
        assert await ingress.process("otro/topic", b"{}", RECEIVED) is False


class TestIngressQueue:

    @pytest.mark.asyncio
    async def test_start_subscribes_and_registers_handler(self, ingress, transport):
        await ingress.start()
        try:
            assert transport.handler == ingress.handle_message
            assert set(transport.topics) == set(IngressTopics().all())
        finally:
            await ingress.stop()

    @pytest.mark.asyncio
    async def test_messages_from_handler_are_processed_in_order(self, ingress, transport, sink):
        await ingress.start()
        try:
            transport.handler("acquasys/sensors", orjson.dumps(telemetry(level=40.0)))
            transport.handler("acquasys/sensors", orjson.dumps(telemetry(level=41.0)))
            for _ in range(50):
                if len(sink.written) == 2:
                    break
                await asyncio.sleep(0.01)
        finally:
            await ingress.stop()

        assert [r.level for r in sink.written] == [40.0, 41.0]
