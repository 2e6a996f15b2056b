"""Ingreso MQTT: transporte paho, validación y puente hacia el núcleo."""

from .client import MQTTTransport
from .ingress import IngressTopics, TelemetryIngress
from .validators import ValidationResult, validate_telemetry

__all__ = [
    "IngressTopics",
    "MQTTTransport",
    "TelemetryIngress",
    "ValidationResult",
    "validate_telemetry",
]
