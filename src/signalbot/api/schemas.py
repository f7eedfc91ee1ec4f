"""Request/response models for the HTTP API and inbound Telegram updates."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from signalbot.models import Signal


class APIResponse(BaseModel):
    """Envelope returned by every JSON endpoint."""

    success: bool
    message: str = ""
    data: Any = None
    error: str | None = None


class SignalRequest(BaseModel):
    stock_symbol: str = ""


class WebhookSetupRequest(BaseModel):
    webhook_url: str = ""


class TelegramChat(BaseModel):
    id: int


class TelegramMessage(BaseModel):
    message_id: int = 0
    chat: TelegramChat
    text: str = ""


class TelegramUpdate(BaseModel):
    """Subset of a Telegram ``Update`` the bot reacts to. Other fields are ignored."""

    update_id: int = 0
    message: TelegramMessage | None = None


def _decimal_to_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def signal_to_dict(signal: Signal) -> dict[str, Any]:
    """Serialize a Signal for JSON, keeping prices as strings."""
    data: dict[str, Any] = {
        "symbol": signal.symbol,
        "signal": signal.direction,
        "bucket": signal.bucket.value,
        "buy_price": _decimal_to_str(signal.entry_price),
        "target_price": _decimal_to_str(signal.target_price),
        "stop_loss": _decimal_to_str(signal.stop_price),
        "confidence": signal.confidence,
        "reason": signal.rationale,
        "timestamp": signal.generated_at.isoformat(),
        "ohlcv_analysis": None,
    }
    bar = signal.latest_bar
    if bar is not None:
        data["ohlcv_analysis"] = {
            "open": _decimal_to_str(bar.open),
            "high": _decimal_to_str(bar.high),
            "low": _decimal_to_str(bar.low),
            "close": _decimal_to_str(bar.close),
            "volume": bar.volume,
            "explanation": bar.explanation,
        }
    return data
