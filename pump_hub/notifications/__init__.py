"""Notificaciones y comandos remotos por Telegram."""

from .bot import CHAT_COMMANDS, TelegramNotificationChannel
from .telegram import TelegramClient

__all__ = ["CHAT_COMMANDS", "TelegramClient", "TelegramNotificationChannel"]
