"""AcquaSys pump hub.

Ingesta de telemetría MQTT de la bomba, control automático, alertas,
series temporales en Redis, bot de Telegram y fan-out por WebSocket.
"""

__version__ = "1.3.0"
