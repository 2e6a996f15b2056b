"""Dependencias FastAPI compartidas por los routers."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request

from .container import HubContainer


def get_hub(request: Request) -> HubContainer:
    return request.app.state.hub


def require_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    hub: HubContainer = Depends(get_hub),
) -> None:
    # Sin HUB_API_KEY configurada se aceptan las peticiones (modo dev).
    expected = hub.settings.api_key
    if not expected:
        return

    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid API key")
