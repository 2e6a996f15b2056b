"""Métricas Prometheus del hub."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

MQTT_MESSAGES = Counter(
    "acquasys_mqtt_messages_total",
    "MQTT messages received by the ingress",
    ["kind", "status"],  # kind: sensors/pump_status/system_status; status: accepted/invalid/dropped
)
READINGS_PROCESSED = Counter(
    "acquasys_readings_processed_total",
    "Sensor readings processed by the orchestration core",
)
ALERTS_DISPATCHED = Counter(
    "acquasys_alerts_dispatched_total",
    "Alerts dispatched to notification and fan-out",
    ["key"],
)
ALERTS_SUPPRESSED = Counter(
    "acquasys_alerts_suppressed_total",
    "Alerts skipped because their key was in cooldown",
    ["key"],
)
SINK_WRITES = Counter(
    "acquasys_sink_writes_total",
    "Time-series writes",
    ["status"],  # ok, failed, short_circuit
)
PUMP_COMMANDS = Counter(
    "acquasys_pump_commands_total",
    "Commands published to the pump controller",
    ["action", "source", "status"],
)
WS_CLIENTS = Gauge(
    "acquasys_ws_clients",
    "Connected WebSocket dashboard clients",
)
SINK_DEGRADED = Gauge(
    "acquasys_sink_degraded",
    "1 while the time-series store is unavailable and the ring buffer serves queries",
)
