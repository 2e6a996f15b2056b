"""Cliente HTTP mínimo de la Bot API de Telegram."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"


class TelegramClient:
    """Envuelve ``httpx.AsyncClient`` para getMe, getUpdates y sendMessage.

    ``get_me`` y ``get_updates`` propagan ``httpx.HTTPError`` para que el
    llamador decida el backoff; ``send_message`` devuelve un booleano.
    """

    def __init__(
        self,
        token: str,
        base_url: str = API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_timeout: int = 20,
    ):
        self._poll_timeout = poll_timeout
        self._http = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/bot{token}",
            timeout=httpx.Timeout(10.0, read=poll_timeout + 10.0),
            transport=transport,
        )

    async def get_me(self) -> Dict[str, Any]:
        resp = await self._http.get("/getMe")
        resp.raise_for_status()
        return resp.json().get("result", {})

    async def get_updates(self, offset: int) -> List[Dict[str, Any]]:
        resp = await self._http.get(
            "/getUpdates",
            params={"offset": offset, "timeout": self._poll_timeout},
        )
        resp.raise_for_status()
        body = resp.json()
        if not body.get("ok"):
            logger.warning("[TELEGRAM] getUpdates not ok: %s", body.get("description"))
            return []
        return body.get("result", [])

    async def send_message(self, chat_id: str, text: str, parse_mode: str = "HTML") -> bool:
        try:
            resp = await self._http.post(
                "/sendMessage",
                json={"chat_id": chat_id, "text": text, "parse_mode": parse_mode},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("[TELEGRAM] sendMessage failed: %s", e)
            return False
        try:
            ok = bool(resp.json().get("ok"))
        except ValueError:
            # Cuerpo no JSON (p. ej. página de error de un proxy)
            logger.error("[TELEGRAM] sendMessage returned non-JSON body: %s", resp.text[:200])
            return False
        if not ok:
            logger.error("[TELEGRAM] sendMessage rejected: %s", resp.text[:200])
        return ok

    async def aclose(self) -> None:
        await self._http.aclose()
