"""Lecturas de sensores: última y ventana histórica."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query

from ..container import HubContainer
from ..dependencies import get_hub

router = APIRouter(prefix="/api/sensor-data", tags=["sensor-data"])


@router.get("/latest")
async def latest_reading(hub: HubContainer = Depends(get_hub)):
    reading = await hub.core.latest_reading()
    if reading is None:
        raise HTTPException(status_code=404, detail="No sensor data available")
    return reading.to_dict()


@router.get("/history")
async def reading_history(
    hours: float = Query(default=24, gt=0, le=24 * 30),
    limit: int = Query(default=50, ge=1, le=1000),
    hub: HubContainer = Depends(get_hub),
):
    """Lecturas de las últimas ``hours`` horas, en orden cronológico."""
    readings = await hub.core.history(timedelta(hours=hours), limit)
    return [r.to_dict() for r in readings]
