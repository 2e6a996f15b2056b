"""Textos HTML para Telegram."""

from __future__ import annotations

import html

from ..core.domain import Alert, AlertSeverity
from ..orchestration.status import format_local_timestamp

_ALERT_ICONS = {
    AlertSeverity.WARNING: "⚠️",
    AlertSeverity.CRITICAL: "🚨",
    AlertSeverity.INFO: "ℹ️",
}

NON_COMMAND_HINT = "❓ Use /ayuda para ver los comandos disponibles."
INTERNAL_ERROR = "❌ Error interno al procesar el comando."


def format_alert(alert: Alert, tz_name: str) -> str:
    pump_icon = "🟢" if alert.pump else "🔴"
    pump_label = "ENCENDIDA" if alert.pump else "APAGADA"
    return (
        f"{_ALERT_ICONS[alert.severity]} <b>Alerta AcquaSys</b>\n\n"
        f"📍 <b>Dispositivo:</b> {html.escape(alert.device)}\n"
        f"💧 <b>Nivel:</b> {alert.level:.1f}%\n"
        f"⚡ <b>Corriente:</b> {alert.current:.2f}A\n"
        f"📳 <b>Vibración:</b> {alert.vibration:.3f}G\n"
        f"{pump_icon} <b>Bomba:</b> {pump_label}\n\n"
        f"📝 <b>Mensaje:</b> {alert.message}\n"
        f"🕐 <b>Fecha/Hora:</b> {format_local_timestamp(alert.timestamp, tz_name)}"
    )


def format_unknown_command(command: str) -> str:
    return f'❓ Comando "{html.escape(command)}" no reconocido.\nUse /ayuda.'


def format_help(user: str, commands_text: str) -> str:
    return f"👋 <b>¡Hola {html.escape(user)}!</b>\n\n{commands_text}"
