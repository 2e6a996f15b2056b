"""Routers HTTP del hub."""

from .health import router as health_router
from .pump import router as pump_router
from .sensor_data import router as sensor_data_router
from .system import router as system_router

__all__ = ["health_router", "pump_router", "sensor_data_router", "system_router"]
