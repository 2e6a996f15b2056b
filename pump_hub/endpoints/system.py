"""Configuración operativa, estado del sistema y prueba del bot."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..container import HubContainer
from ..dependencies import get_hub, require_api_key
from ..schemas import TelegramTestOut

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/system-config")
def system_config(hub: HubContainer = Depends(get_hub)):
    return hub.core.config_snapshot()


@router.get("/system-status")
async def system_status(hub: HubContainer = Depends(get_hub)):
    report = await hub.core.build_status_report()
    return report.to_dict()


@router.post(
    "/telegram/test",
    response_model=TelegramTestOut,
    dependencies=[Depends(require_api_key)],
)
async def telegram_test(hub: HubContainer = Depends(get_hub)):
    return TelegramTestOut(success=await hub.notifier.send_test_alert())
