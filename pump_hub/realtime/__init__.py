"""Fan-out WebSocket para dashboards."""

from .gateway import WebSocketFanoutGateway, envelope

__all__ = ["WebSocketFanoutGateway", "envelope"]
