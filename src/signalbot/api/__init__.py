"""HTTP surface: health, signal generation, batch control and Telegram webhook."""

from signalbot.api.app import create_app

__all__ = ["create_app"]
