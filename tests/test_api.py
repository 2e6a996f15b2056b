"""Tests de la API HTTP y WebSocket con colaboradores falsos.

Ejecutar:
    pytest tests/test_api.py -v
"""

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from common.config import get_settings
from pump_hub.container import wire
from pump_hub.core.ports import ConnectionState
from pump_hub.main import create_app
from pump_hub.realtime import WebSocketFanoutGateway

from .conftest import FakeNotifier, FakeSink, FakeTransport, make_reading

API_KEY = "test-key"


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("ACQUASYS_ENV_FILE", "")
    return replace(get_settings(), api_key=API_KEY)


@pytest.fixture
def hub(settings):
    return wire(
        settings,
        FakeTransport(),
        FakeSink(),
        FakeNotifier(),
        WebSocketFanoutGateway(ping_interval=0),
    )


@pytest.fixture
def client(hub):
    with TestClient(create_app(hub=hub)) as c:
        yield c


AUTH = {"X-API-Key": API_KEY}


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_ready_when_mqtt_connected(self, client):
        resp = client.get("/ready")
        assert resp.status_code == 200
        assert resp.json()["storage"] == "ok"

    def test_not_ready_when_mqtt_down(self, client, hub):
        hub.transport.state = ConnectionState.DISCONNECTED
        resp = client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["mqtt"] == "disconnected"

    def test_metrics(self, client):
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "acquasys_" in resp.text


# =============================================================================
# LECTURAS Y ESTADO
# =============================================================================

class TestSensorData:

    def test_latest_404_without_readings(self, client):
        assert client.get("/api/sensor-data/latest").status_code == 404

    def test_latest_after_reading(self, client, hub):
        client.portal.call(hub.core.on_sensor_reading, make_reading(level=66.0))
        body = client.get("/api/sensor-data/latest").json()
        assert body["level"] == 66.0
        assert body["efficiency"] == 100.0

    def test_history_validates_params(self, client):
        assert client.get("/api/sensor-data/history", params={"hours": 0}).status_code == 422
        assert client.get("/api/sensor-data/history", params={"limit": 5000}).status_code == 422

    def test_history(self, client, hub):
        client.portal.call(hub.core.on_sensor_reading, make_reading())
        resp = client.get("/api/sensor-data/history", params={"hours": 1, "limit": 10})
        assert resp.status_code == 200
        assert len(resp.json()) == 1


class TestSystem:

    def test_system_status_offline(self, client):
        body = client.get("/api/system-status").json()
        assert body["status"] == "offline"
        assert body["mode"] == "Automático"

    def test_system_config(self, client):
        body = client.get("/api/system-config").json()
        assert body["pumpAutoMode"] is True
        assert body["lowWaterThreshold"] == 20.0

    def test_telegram_test_requires_key(self, client):
        assert client.post("/api/telegram/test").status_code == 401
        assert client.post("/api/telegram/test", headers=AUTH).json() == {"success": True}


# =============================================================================
# CONTROL DE BOMBA
# =============================================================================

class TestPumpControl:

    def test_requires_api_key(self, client):
        resp = client.post("/api/pump/control", json={"action": "on"}, headers={"X-API-Key": "wrong"})
        assert resp.status_code == 401

    def test_invalid_action(self, client):
        resp = client.post("/api/pump/control", json={"action": "turbo"}, headers=AUTH)
        assert resp.status_code == 400

    def test_toggle_rejected_in_auto_mode(self, client, hub):
        resp = client.post("/api/pump/start", headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert hub.transport.published == []

    def test_manual_then_start(self, client, hub):
        assert client.post("/api/pump/manual", headers=AUTH).json()["success"] is True
        body = client.post("/api/pump/control", json={"action": "on"}, headers=AUTH).json()

        assert body == {"success": True, "message": body["message"], "action": "on"}
        assert hub.transport.tokens == ["MANUAL", "ON"]

    def test_open_without_configured_key(self, settings):
        open_hub = wire(
            replace(settings, api_key=None),
            FakeTransport(),
            FakeSink(),
            FakeNotifier(),
            WebSocketFanoutGateway(ping_interval=0),
        )
        with TestClient(create_app(hub=open_hub)) as c:
            assert c.post("/api/pump/auto").status_code == 200


# =============================================================================
# WEBSOCKET
# =============================================================================

class TestDashboardSocket:

    def test_receives_config_then_command_result(self, client):
        with client.websocket_connect("/ws") as ws:
            first = ws.receive_json()
            assert first["type"] == "systemConfig"
            assert first["data"]["pumpMode"] == "auto"

            ws.send_json({"type": "controlPump", "action": "off"})
            reply = ws.receive_json()

        assert reply["type"] == "commandResult"
        assert reply["data"]["success"] is False
        assert reply["data"]["action"] == "off"

    def test_receives_latest_reading_on_connect(self, client, hub):
        client.portal.call(hub.core.on_sensor_reading, make_reading(level=33.0))
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            second = ws.receive_json()
        assert second["type"] == "sensorData"
        assert second["data"]["level"] == 33.0
