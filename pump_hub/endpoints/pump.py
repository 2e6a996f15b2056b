"""Control de bomba vía HTTP."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..container import HubContainer
from ..core.domain import RemoteCommand, RemoteOrigin
from ..dependencies import get_hub, require_api_key
from ..schemas import CommandResultOut, PumpControlIn

router = APIRouter(
    prefix="/api/pump",
    tags=["pump"],
    dependencies=[Depends(require_api_key)],
)


async def _run(hub: HubContainer, action: str) -> CommandResultOut:
    try:
        command = RemoteCommand.from_action(action, RemoteOrigin.API)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid action")
    result = await hub.core.on_remote_command(command)
    return CommandResultOut(**result.to_dict())


@router.post("/control", response_model=CommandResultOut)
async def pump_control(payload: PumpControlIn, hub: HubContainer = Depends(get_hub)):
    """``{action: on|off|auto|manual}`` con las mismas reglas que el bot."""
    return await _run(hub, payload.action)


@router.post("/start", response_model=CommandResultOut)
async def pump_start(hub: HubContainer = Depends(get_hub)):
    return await _run(hub, "on")


@router.post("/stop", response_model=CommandResultOut)
async def pump_stop(hub: HubContainer = Depends(get_hub)):
    return await _run(hub, "off")


@router.post("/auto", response_model=CommandResultOut)
async def pump_auto(hub: HubContainer = Depends(get_hub)):
    return await _run(hub, "auto")


@router.post("/manual", response_model=CommandResultOut)
async def pump_manual(hub: HubContainer = Depends(get_hub)):
    return await _run(hub, "manual")
