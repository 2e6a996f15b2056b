"""Health, readiness y métricas."""

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..container import HubContainer
from ..core.ports import ConnectionState
from ..dependencies import get_hub

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Liveness probe: ok si el proceso responde."""
    return {"status": "ok"}


@router.get("/ready")
def ready(hub: HubContainer = Depends(get_hub)):
    """Readiness: MQTT conectado. Redis caído solo degrada, no bloquea."""
    mqtt_connected = hub.transport.connection_state() is ConnectionState.CONNECTED
    body = {
        "status": "ready" if mqtt_connected else "not_ready",
        "mqtt": hub.transport.connection_state().value,
        "storage": "degraded" if not hub.sink.is_available() else "ok",
        "deviceStatus": hub.core.device_status or None,
        "components": hub.health_check(),
    }
    return JSONResponse(body, status_code=200 if mqtt_connected else 503)


@router.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
