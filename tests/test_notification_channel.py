"""Tests del canal de Telegram (alertas, comandos, polling).

Ejecutar:
    pytest tests/test_notification_channel.py -v
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from pump_hub.core.domain import (
    Alert,
    AlertKey,
    AlertSeverity,
    CommandResult,
    RemoteCommandType,
    RemoteOrigin,
)
from pump_hub.core.exceptions import HubConfigurationError
from pump_hub.notifications import TelegramClient, TelegramNotificationChannel
from pump_hub.notifications.bot import parse_chat_command
from pump_hub.notifications.formatting import NON_COMMAND_HINT, format_alert

CHAT_ID = "123456"


def update(text, chat_id=CHAT_ID, update_id=1, first_name="Ana"):
    return {
        "update_id": update_id,
        "message": {"text": text, "chat": {"id": int(chat_id)}, "from": {"first_name": first_name}},
    }


def http_error(status):
    request = httpx.Request("GET", "https://api.telegram.org/botX/getUpdates")
    return httpx.HTTPStatusError("error", request=request, response=httpx.Response(status, request=request))


@pytest.fixture
def client():
    c = AsyncMock(spec=TelegramClient)
    c.get_me.return_value = {"first_name": "AcquaSys", "username": "acquasys_bot"}
    c.get_updates.return_value = []
    c.send_message.return_value = True
    return c


@pytest.fixture
def handler():
    return AsyncMock(return_value=CommandResult(True, "respuesta"))


@pytest.fixture
def channel(client, handler):
    ch = TelegramNotificationChannel(client, CHAT_ID, timezone_name="America/Sao_Paulo")
    ch.set_command_handler(handler)
    return ch


def replies(client):
    return [call.args[1] for call in client.send_message.await_args_list]


# =============================================================================
# COMANDOS
# =============================================================================

class TestChatCommands:

    @pytest.mark.parametrize("text,expected", [
        ("/status", "/status"),
        ("/Status@AcquaBot", "/status"),
        ("  /ligar ahora ", "/ligar"),
    ])
    def test_parse(self, text, expected):
        assert parse_chat_command(text) == expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text,expected", [
        ("/status", RemoteCommandType.STATUS),
        ("/ligar", RemoteCommandType.PUMP_ON),
        ("/desligar", RemoteCommandType.PUMP_OFF),
        ("/automatico", RemoteCommandType.SET_AUTO),
        ("/manual", RemoteCommandType.SET_MANUAL),
    ])
    async def test_command_mapping(self, channel, handler, client, text, expected):
        await channel.handle_update(update(text))

        command = handler.await_args.args[0]
        assert command.type is expected
        assert command.origin is RemoteOrigin.CHAT
        assert command.user == "Ana"
        assert replies(client) == ["respuesta"]

    @pytest.mark.asyncio
    async def test_unauthorized_chat_ignored(self, channel, handler, client):
        await channel.handle_update(update("/ligar", chat_id="999"))

        handler.assert_not_awaited()
        client.send_message.assert_not_awaited()
        assert channel.health_check()["unauthorized"] == 1

    @pytest.mark.asyncio
    async def test_plain_text_gets_hint(self, channel, handler, client):
        await channel.handle_update(update("hola"))
        handler.assert_not_awaited()
        assert replies(client) == [NON_COMMAND_HINT]

    @pytest.mark.asyncio
    async def test_unknown_command(self, channel, handler, client):
        await channel.handle_update(update("/turbo"))
        handler.assert_not_awaited()
        assert "/turbo" in replies(client)[0]

    @pytest.mark.asyncio
    async def test_help_greets_user(self, channel, client):
        await channel.handle_update(update("/ayuda"))
        assert replies(client)[0].startswith("👋 <b>¡Hola Ana!</b>")

    @pytest.mark.asyncio
    async def test_handler_error_replies_internal_error(self, channel, handler, client):
        handler.side_effect = RuntimeError("boom")
        await channel.handle_update(update("/status"))
        assert "Error interno" in replies(client)[0]


# =============================================================================
# POLLING
# =============================================================================

class TestPolling:

    @pytest.mark.asyncio
    async def test_updates_advance_offset(self, channel, client):
        client.get_updates.return_value = [update("/status", update_id=41), update("/ayuda", update_id=42)]

        assert await channel.poll_once() == 0.0
        client.get_updates.return_value = []
        await channel.poll_once()

        assert client.get_updates.await_args.args[0] == 43

    @pytest.mark.asyncio
    async def test_backoff_grows_and_caps(self, channel, client):
        client.get_updates.side_effect = httpx.ConnectError("offline")

        delays = [await channel.poll_once() for _ in range(6)]

        assert delays[:3] == [4.5, 6.75, 10.125]
        assert delays[-1] == 15.0

    @pytest.mark.asyncio
    async def test_backoff_resets_after_success(self, channel, client):
        client.get_updates.side_effect = httpx.ConnectError("offline")
        await channel.poll_once()
        client.get_updates.side_effect = None
        assert await channel.poll_once() == 0.0
        assert channel.health_check()["retry_delay"] == 3.0

    @pytest.mark.asyncio
    async def test_conflict_pauses(self, channel, client):
        client.get_updates.side_effect = http_error(409)
        assert await channel.poll_once() == 30.0
        assert channel.health_check()["conflicts"] == 1

    @pytest.mark.asyncio
    async def test_server_error_uses_backoff(self, channel, client):
        client.get_updates.side_effect = http_error(502)
        assert await channel.poll_once() == 4.5


# =============================================================================
# ALERTAS Y CICLO DE VIDA
# =============================================================================

def make_alert():
    return Alert(
        severity=AlertSeverity.CRITICAL,
        key=AlertKey.LEAK_DETECTION,
        message="fuga",
        device="acquasys_esp32",
        level=48.5,
        current=0.0,
        vibration=0.22,
        pump=False,
        timestamp=datetime(2025, 10, 9, 12, 0, tzinfo=timezone.utc),
    )


class TestAlerts:

    def test_format_alert(self):
        text = format_alert(make_alert(), "America/Sao_Paulo")
        assert text.startswith("🚨 <b>Alerta AcquaSys</b>")
        assert "48.5%" in text
        assert "APAGADA" in text
        assert "09/10/2025, 09:00:00" in text

    @pytest.mark.asyncio
    async def test_send_alert_to_authorized_chat(self, channel, client):
        assert await channel.send_alert(make_alert()) is True
        assert client.send_message.await_args.args[0] == CHAT_ID

    @pytest.mark.asyncio
    async def test_disabled_channel(self):
        ch = TelegramNotificationChannel(None, None)
        await ch.start()
        assert ch.enabled is False
        assert await ch.send_alert(make_alert()) is False
        assert await ch.send_test_alert() is False

    @pytest.mark.asyncio
    async def test_start_requires_handler(self, client):
        ch = TelegramNotificationChannel(client, CHAT_ID)
        with pytest.raises(HubConfigurationError):
            await ch.start()

    @pytest.mark.asyncio
    async def test_start_announces_and_polls(self, channel, client):
        await channel.start()
        try:
            assert "iniciado" in replies(client)[0]
            assert channel.health_check()["bot"] == "acquasys_bot"
        finally:
            await channel.stop()
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_test_alert_fails_when_getme_fails(self, channel, client):
        client.get_me.side_effect = httpx.ConnectError("offline")
        assert await channel.send_test_alert() is False
        client.send_message.assert_not_awaited()


# =============================================================================
# ROBUSTEZ
# =============================================================================

def telegram_api(send_response):
    """Bot API simulada con httpx.MockTransport."""

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/getUpdates"):
            return httpx.Response(200, json={"ok": True, "result": [update("/ayuda", update_id=7)]})
        if path.endswith("/getMe"):
            return httpx.Response(200, json={"ok": True, "result": {"username": "acquasys_bot"}})
        return send_response

    return httpx.MockTransport(handler)


class TestResilience:

    @pytest.mark.asyncio
    async def test_non_json_send_reply_does_not_break_polling(self, handler):
        api = telegram_api(httpx.Response(200, text="<html>502 Bad Gateway</html>"))
        client = TelegramClient("TOKEN", transport=api)
        ch = TelegramNotificationChannel(client, CHAT_ID)
        ch.set_command_handler(handler)
        try:
            assert await ch.poll_once() == 0.0
        finally:
            await client.aclose()
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_message_non_json_returns_false(self):
        api = telegram_api(httpx.Response(200, text="<html>oops</html>"))
        client = TelegramClient("TOKEN", transport=api)
        try:
            assert await client.send_message(CHAT_ID, "hola") is False
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_poll_loop_survives_unexpected_errors(self, client, handler):
        delays = []
        two_cycles = asyncio.Event()

        async def fake_sleep(seconds):
            delays.append(seconds)
            if len(delays) >= 2:
                two_cycles.set()
            await asyncio.sleep(0)

        client.get_updates.side_effect = RuntimeError("unexpected")
        ch = TelegramNotificationChannel(client, CHAT_ID, sleep=fake_sleep)
        ch.set_command_handler(handler)

        await ch.start()
        try:
            await asyncio.wait_for(two_cycles.wait(), timeout=1.0)
            assert ch.health_check()["polling"] is True
        finally:
            await ch.stop()

        assert delays[:2] == [4.5, 6.75]


class TestHtmlEscaping:

    def test_alert_device_escaped(self):
        alert = replace(make_alert(), device="esp<32>&co")
        assert "esp&lt;32&gt;&amp;co" in format_alert(alert, "America/Sao_Paulo")

    @pytest.mark.asyncio
    async def test_user_name_escaped_in_help(self, channel, client):
        await channel.handle_update(update("/ayuda", first_name="<Ana & Bea>"))
        assert "¡Hola &lt;Ana &amp; Bea&gt;!" in replies(client)[0]

    @pytest.mark.asyncio
    async def test_unknown_command_escaped(self, channel, client):
        await channel.handle_update(update("/x<b>"))
        assert "/x&lt;b&gt;" in replies(client)[0]
