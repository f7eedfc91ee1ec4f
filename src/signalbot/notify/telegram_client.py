"""Telegram Bot API client via httpx async.

Sends HTML-formatted messages and manages the inbound webhook registration.
The bot token is part of every request URL, so URLs are never logged.
"""

import httpx

from signalbot.config import TelegramSettings
from signalbot.exceptions import DeliveryError
from signalbot.logging import get_logger
from signalbot.notify.sink import NotificationSink

logger = get_logger(__name__)


class TelegramSink(NotificationSink):
    """Notification sink backed by the Telegram Bot API."""

    def __init__(
        self,
        settings: TelegramSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self.default_chat_id = settings.chat_id
        self._client = client or httpx.AsyncClient(timeout=settings.timeout_seconds)

    def _url(self, method: str) -> str:
        token = self._settings.bot_token.get_secret_value()
        return f"{self._settings.base_url}/bot{token}/{method}"

    async def _call(self, method: str, data: dict | None = None) -> None:
        try:
            response = await self._client.post(self._url(method), data=data)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Telegram {method} failed: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            raise DeliveryError(
                f"Telegram API returned status {response.status_code}: {response.text}"
            )

    async def send(self, chat_id: str, text: str) -> None:
        await self._call(
            "sendMessage",
            {"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
        )
        logger.debug("telegram_message_sent", chat_id=chat_id, length=len(text))

    async def setup_webhook(self, webhook_url: str) -> None:
        """Register ``webhook_url`` as the bot's update endpoint."""
        await self._call("setWebhook", {"url": webhook_url})
        logger.info("telegram_webhook_set", webhook_url=webhook_url)

    async def delete_webhook(self) -> None:
        """Remove the current webhook registration."""
        await self._call("deleteWebhook")
        logger.info("telegram_webhook_deleted")

    async def close(self) -> None:
        await self._client.aclose()
