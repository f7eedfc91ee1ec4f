"""Shared test fixtures for the stock signal bot."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from signalbot.config import (
    AppSettings,
    GeminiSettings,
    ScheduleSettings,
    SignalSettings,
    TelegramSettings,
)
from signalbot.exceptions import DeliveryError
from signalbot.models import LatestBarAnalysis, PriceBar, Signal
from signalbot.notify.formatting import MessageFormatter
from signalbot.notify.sink import NotificationSink


class RecordingSink(NotificationSink):
    """In-memory sink that records every (chat_id, text) it is asked to send."""

    def __init__(self, default_chat_id: str = "default-chat", fail: bool = False) -> None:
        self.default_chat_id = default_chat_id
        self.fail = fail
        self.sent: list[tuple[str, str]] = []
        self.closed = False

    async def send(self, chat_id: str, text: str) -> None:
        if self.fail:
            raise DeliveryError("telegram unreachable")
        self.sent.append((chat_id, text))

    async def close(self) -> None:
        self.closed = True

    def texts(self, chat_id: str | None = None) -> list[str]:
        return [text for cid, text in self.sent if chat_id is None or cid == chat_id]


def make_signal(
    symbol: str = "BBCA.JK",
    direction: str = "BUY",
    entry: str = "1000",
    target: str = "1100",
    stop: str = "950",
    confidence: int = 80,
    rationale: str = "Bullish engulfing above EMA20",
    latest_bar: LatestBarAnalysis | None = None,
) -> Signal:
    return Signal(
        symbol=symbol,
        direction=direction,
        entry_price=Decimal(entry),
        target_price=Decimal(target),
        stop_price=Decimal(stop),
        confidence=confidence,
        rationale=rationale,
        generated_at=datetime(2025, 1, 6, 2, 30, tzinfo=timezone.utc),
        latest_bar=latest_bar,
    )


def make_bars(count: int = 3, start: str = "1000") -> list[PriceBar]:
    base = Decimal(start)
    first = datetime(2025, 1, 6, 2, 0, tzinfo=timezone.utc)
    return [
        PriceBar(
            timestamp=first + timedelta(minutes=5 * i),
            open=base + i,
            high=base + i + 5,
            low=base + i - 5,
            close=base + i + 2,
            volume=1000 * (i + 1),
        )
        for i in range(count)
    ]


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with dummy credentials and no batch delay."""
    return AppSettings(
        log_level="DEBUG",
        gemini=GeminiSettings(api_key="test-gemini-key"),  # type: ignore[arg-type]
        telegram=TelegramSettings(
            bot_token="test-bot-token",  # type: ignore[arg-type]
            chat_id="default-chat",
        ),
        signal=SignalSettings(
            stock_symbols=["BBCA.JK", "BBRI.JK", "ANTM.JK"],
            batch_delay_seconds=0.0,
        ),
        schedule=ScheduleSettings(times=["08:30", "14:45"], timezone="Asia/Jakarta"),
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def formatter() -> MessageFormatter:
    return MessageFormatter(timezone.utc)
