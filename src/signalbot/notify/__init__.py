"""Notification layer -- Telegram delivery and message formatting."""

from signalbot.notify.formatting import MessageFormatter
from signalbot.notify.sink import NotificationSink
from signalbot.notify.telegram_client import TelegramSink

__all__ = ["MessageFormatter", "NotificationSink", "TelegramSink"]
