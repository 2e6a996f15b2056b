"""Aplicación FastAPI del hub y punto de entrada."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from common.config import Settings, get_settings
from common.log_setup import configure_logging

from . import __version__
from .container import HubContainer, build_container
from .endpoints import health_router, pump_router, sensor_data_router, system_router
from .realtime.endpoint import router as ws_router

logger = logging.getLogger(__name__)


def create_app(hub: Optional[HubContainer] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Crea la app.

    Args:
        hub: Contenedor ya construido (tests); si es None se construye con
            los adaptadores reales al arrancar.
        settings: Configuración; por defecto ``get_settings()``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container = hub or build_container(settings or get_settings())
        app.state.hub = container
        await container.start()
        try:
            yield
        finally:
            await container.stop()

    app = FastAPI(title="AcquaSys Pump Hub", version=__version__, lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(sensor_data_router)
    app.include_router(system_router)
    app.include_router(pump_router)
    app.include_router(ws_router)
    return app


def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("[HUB] AcquaSys pump hub v%s on %s:%d", __version__, settings.host, settings.port)
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
