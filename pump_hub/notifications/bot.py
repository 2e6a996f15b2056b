"""Canal de notificaciones por Telegram.

Salida: alertas formateadas al chat autorizado.
Entrada: long-polling de ``getUpdates`` con backoff; los comandos del chat
autorizado se traducen a ``RemoteCommand`` y se delegan al handler.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .. import __version__
from ..core.domain import (
    Alert,
    AlertKey,
    AlertSeverity,
    RemoteCommand,
    RemoteCommandType,
    RemoteOrigin,
)
from ..core.exceptions import HubConfigurationError
from ..core.ports import CommandHandler, NotificationChannel
from .formatting import (
    INTERNAL_ERROR,
    NON_COMMAND_HINT,
    format_alert,
    format_help,
    format_unknown_command,
)
from .telegram import TelegramClient

logger = logging.getLogger(__name__)

CHAT_COMMANDS: Dict[str, RemoteCommandType] = {
    "/start": RemoteCommandType.HELP,
    "/help": RemoteCommandType.HELP,
    "/ajuda": RemoteCommandType.HELP,
    "/ayuda": RemoteCommandType.HELP,
    "/status": RemoteCommandType.STATUS,
    "/auto": RemoteCommandType.SET_AUTO,
    "/automatico": RemoteCommandType.SET_AUTO,
    "/manual": RemoteCommandType.SET_MANUAL,
    "/ligar": RemoteCommandType.PUMP_ON,
    "/on": RemoteCommandType.PUMP_ON,
    "/desligar": RemoteCommandType.PUMP_OFF,
    "/off": RemoteCommandType.PUMP_OFF,
}

BASE_RETRY_DELAY = 3.0
MAX_RETRY_DELAY = 15.0
BACKOFF_FACTOR = 1.5
CONFLICT_PAUSE = 30.0


def parse_chat_command(text: str) -> str:
    """'/Status@AcquaBot extra' -> '/status'."""
    return text.strip().lower().split()[0].split("@")[0]


class TelegramNotificationChannel(NotificationChannel):
    """Bot de Telegram como canal de alertas y de comandos remotos.

    Sin token o chat_id configurados queda deshabilitado: no hace polling y
    los envíos devuelven False con un warning.
    """

    def __init__(
        self,
        client: Optional[TelegramClient],
        chat_id: Optional[str],
        timezone_name: str = "America/Sao_Paulo",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._client = client
        self._chat_id = str(chat_id) if chat_id else None
        self._tz = timezone_name
        self._sleep = sleep
        self._handler: Optional[CommandHandler] = None
        self._task: Optional[asyncio.Task] = None
        self._offset = 0
        self._retry_delay = BASE_RETRY_DELAY
        self._bot_name: Optional[str] = None
        self._stats = {
            "alerts_sent": 0,
            "alerts_failed": 0,
            "commands": 0,
            "unauthorized": 0,
            "poll_errors": 0,
            "conflicts": 0,
        }

    @property
    def enabled(self) -> bool:
        return self._client is not None and self._chat_id is not None

    def set_command_handler(self, handler: CommandHandler) -> None:
        self._handler = handler

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if not self.enabled:
            logger.warning("[TELEGRAM] Bot not configured (TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID), alerts disabled")
            return
        if self._handler is None:
            raise HubConfigurationError("TelegramNotificationChannel started without a command handler")

        if await self.test_connection():
            await self.send_alert(self._system_alert(
                f"🚀 Sistema AcquaSys v{__version__} iniciado - ¡monitoreo activo!",
            ))
        self._task = asyncio.create_task(self._poll_loop(), name="telegram-polling")
        logger.info("[TELEGRAM] Polling started")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("[TELEGRAM] Polling stopped")
        if self._client is not None:
            await self._client.aclose()

    async def test_connection(self) -> bool:
        """getMe contra la Bot API."""
        if self._client is None:
            return False
        try:
            me = await self._client.get_me()
        except httpx.HTTPError as e:
            logger.error("[TELEGRAM] getMe failed: %s", e)
            return False
        self._bot_name = me.get("username")
        logger.info("[TELEGRAM] Bot connected: %s (@%s)", me.get("first_name"), self._bot_name)
        return True

    # ------------------------------------------------------------------
    # Salida
    # ------------------------------------------------------------------

    async def send_alert(self, alert: Alert) -> bool:
        if not self.enabled:
            logger.warning("[TELEGRAM] Not configured, alert %s not sent", alert.key.value)
            return False
        ok = await self._client.send_message(self._chat_id, format_alert(alert, self._tz))
        if ok:
            self._stats["alerts_sent"] += 1
            logger.info("[TELEGRAM] Alert sent: %s - %s", alert.severity.value, alert.message)
        else:
            self._stats["alerts_failed"] += 1
        return ok

    async def send_message(self, chat_id: str, text: str) -> bool:
        if self._client is None:
            return False
        return await self._client.send_message(chat_id, text)

    async def send_test_alert(self) -> bool:
        """Prueba de conectividad: getMe + alerta informativa."""
        if not await self.test_connection():
            return False
        return await self.send_alert(self._system_alert(
            "🧪 Prueba de conectividad del bot - ¡Sistema funcionando!",
            device="AcquaSys Test",
        ))

    def _system_alert(self, message: str, device: str = "AcquaSys Backend") -> Alert:
        return Alert(
            severity=AlertSeverity.INFO,
            key=AlertKey.SYSTEM,
            message=message,
            device=device,
            level=0.0,
            current=0.0,
            vibration=0.0,
            pump=False,
            timestamp=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Entrada
    # ------------------------------------------------------------------

    async def _poll_loop(self) -> None:
        while True:
            try:
                delay = await self.poll_once()
            except Exception as e:
                logger.exception("[TELEGRAM] Unexpected polling error: %s", e)
                delay = self._backoff(e)
            await self._sleep(delay)

    async def poll_once(self) -> float:
        """Un ciclo de long-polling.

        Returns:
            Segundos a esperar antes del siguiente ciclo
        """
        try:
            updates = await self._client.get_updates(self._offset)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 409:
                self._stats["conflicts"] += 1
                logger.warning(
                    "[TELEGRAM] Another bot instance is polling (409), pausing %.0fs",
                    CONFLICT_PAUSE,
                )
                return CONFLICT_PAUSE
            return self._backoff(e)
        except (httpx.HTTPError, ValueError) as e:
            # ValueError: cuerpo no JSON
            return self._backoff(e)

        self._retry_delay = BASE_RETRY_DELAY
        for update in updates:
            self._offset = max(self._offset, int(update.get("update_id", 0)) + 1)
            await self.handle_update(update)
        return 0.0

    def _backoff(self, error: Exception) -> float:
        self._stats["poll_errors"] += 1
        self._retry_delay = min(self._retry_delay * BACKOFF_FACTOR, MAX_RETRY_DELAY)
        logger.error("[TELEGRAM] Polling error: %s (retry in %.1fs)", error, self._retry_delay)
        return self._retry_delay

    async def handle_update(self, update: Dict[str, Any]) -> None:
        message = update.get("message") or {}
        text = message.get("text")
        if not text:
            return

        chat_id = str(message.get("chat", {}).get("id"))
        if chat_id != self._chat_id:
            self._stats["unauthorized"] += 1
            logger.warning("[TELEGRAM] Ignored command from unauthorized chat_id=%s", chat_id)
            return

        user = (message.get("from") or {}).get("first_name") or "usuario"
        logger.info("[TELEGRAM] Command from %s: %s", user, text.strip())

        if not text.strip().startswith("/"):
            await self.send_message(chat_id, NON_COMMAND_HINT)
            return

        command = parse_chat_command(text)
        command_type = CHAT_COMMANDS.get(command)
        if command_type is None:
            await self.send_message(chat_id, format_unknown_command(command))
            return

        self._stats["commands"] += 1
        try:
            result = await self._handler(RemoteCommand(command_type, RemoteOrigin.CHAT, user))
        except Exception as e:
            logger.exception("[TELEGRAM] Command %s failed: %s", command, e)
            await self.send_message(chat_id, INTERNAL_ERROR)
            return

        reply = result.message
        if command_type is RemoteCommandType.HELP:
            reply = format_help(user, reply)
        await self.send_message(chat_id, reply)

    def health_check(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "bot": self._bot_name,
            "polling": self._task is not None and not self._task.done(),
            "retry_delay": self._retry_delay,
            **self._stats,
        }
