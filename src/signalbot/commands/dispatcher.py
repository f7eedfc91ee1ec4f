"""Inbound command dispatcher -- maps chat text to orchestration actions.

Exact-match commands are checked first; any other non-empty text that does
not start with "/" is treated as a stock symbol. Long-running work (batches,
single-symbol analysis) is detached so the inbound request can be
acknowledged immediately; results arrive later through the notification sink.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

import structlog

from signalbot.background import BackgroundTasks
from signalbot.logging import get_logger
from signalbot.models import normalize_symbol
from signalbot.notify.formatting import (
    ALREADY_RUNNING_TEXT,
    BULK_STARTED_TEXT,
    HELP_TEXT,
    SUMMARY_STARTED_TEXT,
    UNKNOWN_COMMAND_TEXT,
    WELCOME_TEXT,
)

if TYPE_CHECKING:
    from signalbot.notify.formatting import MessageFormatter
    from signalbot.notify.sink import NotificationSink
    from signalbot.signals.cooldown import CooldownCache
    from signalbot.signals.orchestrator import SignalOrchestrator

logger = get_logger(__name__)


class Command(str, Enum):
    """Recognized inbound command kinds."""

    START = "/start"
    HELP = "/help"
    STOCKS = "/stocks"
    BULK = "/bulk"
    SUMMARY = "/summary"
    SYMBOL = "symbol"
    UNKNOWN = "unknown"


_EXACT_COMMANDS = {
    Command.START.value: Command.START,
    Command.HELP.value: Command.HELP,
    Command.STOCKS.value: Command.STOCKS,
    Command.BULK.value: Command.BULK,
    Command.SUMMARY.value: Command.SUMMARY,
}


def parse_command(text: str) -> Command:
    """Classify already-stripped inbound text."""
    if text in _EXACT_COMMANDS:
        return _EXACT_COMMANDS[text]
    if text and not text.startswith("/"):
        return Command.SYMBOL
    return Command.UNKNOWN


class CommandDispatcher:
    """Interprets chat input and replies through the notification sink.

    Bare-symbol requests are gated by the cooldown cache: a symbol that
    produced a signal within the window gets a cooldown notice instead, and
    a symbol whose analysis is still running is not analyzed a second time.
    """

    def __init__(
        self,
        orchestrator: SignalOrchestrator,
        sink: NotificationSink,
        formatter: MessageFormatter,
        cooldown: CooldownCache,
        market_suffix: str = "",
        tasks: BackgroundTasks | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._sink = sink
        self._formatter = formatter
        self._cooldown = cooldown
        self._market_suffix = market_suffix
        self._tasks = tasks or BackgroundTasks()
        self._in_flight: set[str] = set()

    @property
    def tasks(self) -> BackgroundTasks:
        return self._tasks

    async def dispatch(self, chat_id: str, text: str) -> Command:
        """Handle one inbound message and return which command it was.

        Returns once the immediate reply has been sent (or failed to send);
        detached work may still be running.
        """
        text = (text or "").strip()
        command = parse_command(text)

        with structlog.contextvars.bound_contextvars(chat_id=chat_id):
            logger.info("command_received", command=command.value)

            if command is Command.START:
                await self._reply(chat_id, WELCOME_TEXT)
            elif command is Command.HELP:
                await self._reply(chat_id, HELP_TEXT)
            elif command is Command.STOCKS:
                symbols = self._orchestrator.configured_symbols()
                await self._reply(chat_id, self._formatter.stocks_list(symbols))
            elif command is Command.BULK:
                started = self._orchestrator.start_batch(deliver_each=True, announce=False)
                await self._reply(chat_id, BULK_STARTED_TEXT if started else ALREADY_RUNNING_TEXT)
            elif command is Command.SUMMARY:
                started = self._orchestrator.start_batch(deliver_each=False, announce=True)
                await self._reply(
                    chat_id, SUMMARY_STARTED_TEXT if started else ALREADY_RUNNING_TEXT
                )
            elif command is Command.SYMBOL:
                await self._start_symbol(chat_id, normalize_symbol(text, self._market_suffix))
            else:
                await self._reply(chat_id, UNKNOWN_COMMAND_TEXT)

        return command

    async def _start_symbol(self, chat_id: str, symbol: str) -> None:
        # check-and-add happens without an await in between
        if symbol in self._in_flight:
            logger.info("symbol_already_in_flight", symbol=symbol)
            await self._reply(chat_id, self._formatter.already_analyzing(symbol))
            return

        self._in_flight.add(symbol)
        coro = self._analyze_symbol(chat_id, symbol)
        try:
            self._tasks.spawn(coro, name=f"symbol-{symbol}")
        except BaseException:
            coro.close()
            self._in_flight.discard(symbol)
            raise

    async def _analyze_symbol(self, chat_id: str, symbol: str) -> None:
        try:
            await self._generate_and_reply(chat_id, symbol)
        finally:
            self._in_flight.discard(symbol)

    async def _generate_and_reply(self, chat_id: str, symbol: str) -> None:
        remaining = await self._cooldown.remaining(symbol)
        if remaining > 0:
            logger.info("symbol_in_cooldown", symbol=symbol, remaining_seconds=round(remaining))
            await self._reply(chat_id, self._formatter.cooldown(symbol, remaining))
            return

        await self._reply(chat_id, self._formatter.analyzing(symbol))
        try:
            signal = await self._orchestrator.generate_signal(symbol)
        except Exception as e:
            logger.warning("symbol_analysis_failed", symbol=symbol, error=str(e))
            await self._reply(chat_id, self._formatter.analysis_failed(symbol, e))
            return

        await self._cooldown.record(symbol)
        await self._reply(chat_id, self._formatter.signal(signal))

    async def _reply(self, chat_id: str, text: str) -> None:
        try:
            await self._sink.send(chat_id, text)
        except Exception as e:
            logger.error("reply_failed", error=str(e))
