"""Tests for CommandDispatcher routing, cooldown gating and reply handling."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import RecordingSink, make_signal
from signalbot.background import BackgroundTasks
from signalbot.commands.dispatcher import Command, CommandDispatcher, parse_command
from signalbot.exceptions import UpstreamFetchError
from signalbot.notify.formatting import (
    ALREADY_RUNNING_TEXT,
    BULK_STARTED_TEXT,
    HELP_TEXT,
    SUMMARY_STARTED_TEXT,
    UNKNOWN_COMMAND_TEXT,
    WELCOME_TEXT,
)
from signalbot.signals.cooldown import CooldownCache

CHAT = "12345"


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _make_orchestrator(start_result: bool = True) -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.start_batch = MagicMock(return_value=start_result)
    orchestrator.configured_symbols = MagicMock(return_value=["BBCA.JK", "BBRI.JK"])

    async def generate(symbol: str):
        return make_signal(symbol=symbol)

    orchestrator.generate_signal = AsyncMock(side_effect=generate)
    return orchestrator


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cooldown(clock: FakeClock) -> CooldownCache:
    return CooldownCache(cooldown_seconds=900, clock=clock)


@pytest.fixture
def orchestrator() -> MagicMock:
    return _make_orchestrator()


@pytest.fixture
def dispatcher(orchestrator, sink, formatter, cooldown) -> CommandDispatcher:
    return CommandDispatcher(
        orchestrator=orchestrator,
        sink=sink,
        formatter=formatter,
        cooldown=cooldown,
        market_suffix=".JK",
        tasks=BackgroundTasks(),
    )


class TestParseCommand:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("/start", Command.START),
            ("/help", Command.HELP),
            ("/stocks", Command.STOCKS),
            ("/bulk", Command.BULK),
            ("/summary", Command.SUMMARY),
            ("BBCA", Command.SYMBOL),
            ("bbca", Command.SYMBOL),
            ("/foo", Command.UNKNOWN),
            ("/START", Command.UNKNOWN),
            ("", Command.UNKNOWN),
        ],
    )
    def test_classification(self, text: str, expected: Command) -> None:
        assert parse_command(text) is expected


class TestStaticCommands:
    @pytest.mark.asyncio
    async def test_start(self, dispatcher, sink) -> None:
        assert await dispatcher.dispatch(CHAT, "/start") is Command.START
        assert sink.sent == [(CHAT, WELCOME_TEXT)]

    @pytest.mark.asyncio
    async def test_help_with_whitespace(self, dispatcher, sink) -> None:
        assert await dispatcher.dispatch(CHAT, "  /help \n") is Command.HELP
        assert sink.sent == [(CHAT, HELP_TEXT)]

    @pytest.mark.asyncio
    async def test_stocks_lists_configured_symbols(self, dispatcher, sink) -> None:
        await dispatcher.dispatch(CHAT, "/stocks")
        text = sink.texts(CHAT)[0]
        assert "<code>BBCA.JK</code>" in text
        assert "Total Stocks:</b> 2" in text

    @pytest.mark.asyncio
    async def test_unknown_command(self, dispatcher, sink, orchestrator) -> None:
        assert await dispatcher.dispatch(CHAT, "/foo") is Command.UNKNOWN
        assert sink.sent == [(CHAT, UNKNOWN_COMMAND_TEXT)]
        orchestrator.start_batch.assert_not_called()
        orchestrator.generate_signal.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_text_is_unknown(self, dispatcher, sink) -> None:
        assert await dispatcher.dispatch(CHAT, "   ") is Command.UNKNOWN
        assert sink.sent == [(CHAT, UNKNOWN_COMMAND_TEXT)]


class TestBatchCommands:
    @pytest.mark.asyncio
    async def test_bulk_starts_per_symbol_batch(self, dispatcher, sink, orchestrator) -> None:
        await dispatcher.dispatch(CHAT, "/bulk")
        orchestrator.start_batch.assert_called_once_with(deliver_each=True, announce=False)
        assert sink.sent == [(CHAT, BULK_STARTED_TEXT)]

    @pytest.mark.asyncio
    async def test_summary_starts_summary_batch(self, dispatcher, sink, orchestrator) -> None:
        await dispatcher.dispatch(CHAT, "/summary")
        orchestrator.start_batch.assert_called_once_with(deliver_each=False, announce=True)
        assert sink.sent == [(CHAT, SUMMARY_STARTED_TEXT)]

    @pytest.mark.asyncio
    async def test_busy_batch_is_reported(self, sink, formatter, cooldown) -> None:
        dispatcher = CommandDispatcher(
            _make_orchestrator(start_result=False), sink, formatter, cooldown, ".JK"
        )
        await dispatcher.dispatch(CHAT, "/summary")
        assert sink.sent == [(CHAT, ALREADY_RUNNING_TEXT)]


class TestSymbolRequests:
    @pytest.mark.asyncio
    async def test_symbol_is_normalized_and_analyzed(self, dispatcher, sink, orchestrator) -> None:
        assert await dispatcher.dispatch(CHAT, " bbca ") is Command.SYMBOL
        await dispatcher.tasks.join()

        orchestrator.generate_signal.assert_awaited_once_with("BBCA.JK")
        texts = sink.texts(CHAT)
        assert texts[0].startswith("🔍 Analyzing BBCA.JK")
        assert "TRADING SIGNAL: BUY BBCA.JK" in texts[1]

    @pytest.mark.asyncio
    async def test_second_request_within_window_hits_cooldown(
        self, dispatcher, sink, orchestrator, clock
    ) -> None:
        await dispatcher.dispatch(CHAT, "BBCA")
        await dispatcher.tasks.join()
        clock.now += 60

        await dispatcher.dispatch(CHAT, "BBCA")
        await dispatcher.tasks.join()

        assert orchestrator.generate_signal.await_count == 1
        assert "generated recently" in sink.texts(CHAT)[-1]
        assert "14 minute(s)" in sink.texts(CHAT)[-1]

    @pytest.mark.asyncio
    async def test_request_after_window_generates_again(
        self, dispatcher, orchestrator, clock
    ) -> None:
        await dispatcher.dispatch(CHAT, "BBCA")
        await dispatcher.tasks.join()
        clock.now += 16 * 60

        await dispatcher.dispatch(CHAT, "BBCA")
        await dispatcher.tasks.join()

        assert orchestrator.generate_signal.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_replies_and_does_not_start_cooldown(
        self, dispatcher, sink, orchestrator, cooldown
    ) -> None:
        orchestrator.generate_signal.side_effect = UpstreamFetchError(
            "no data returned for symbol: ZZZZ.JK"
        )

        await dispatcher.dispatch(CHAT, "zzzz")
        await dispatcher.tasks.join()

        assert "Failed to analyze ZZZZ.JK" in sink.texts(CHAT)[-1]
        assert await cooldown.can_generate("ZZZZ.JK") is True

    @pytest.mark.asyncio
    async def test_symbols_have_independent_cooldowns(self, dispatcher, orchestrator) -> None:
        await dispatcher.dispatch(CHAT, "BBCA")
        await dispatcher.dispatch(CHAT, "BBRI")
        await dispatcher.tasks.join()

        assert orchestrator.generate_signal.await_count == 2


class TestReplyFailures:
    @pytest.mark.asyncio
    async def test_send_failure_is_swallowed(self, orchestrator, formatter, cooldown) -> None:
        dispatcher = CommandDispatcher(
            orchestrator, RecordingSink(fail=True), formatter, cooldown, ".JK"
        )

        assert await dispatcher.dispatch(CHAT, "/start") is Command.START

    @pytest.mark.asyncio
    async def test_symbol_flow_survives_send_failure(
        self, orchestrator, formatter, cooldown
    ) -> None:
        dispatcher = CommandDispatcher(
            orchestrator, RecordingSink(fail=True), formatter, cooldown, ".JK"
        )

        await dispatcher.dispatch(CHAT, "BBCA")
        await dispatcher.tasks.join()

        orchestrator.generate_signal.assert_awaited_once_with("BBCA.JK")
        assert await cooldown.can_generate("BBCA.JK") is False


class TestConcurrentSymbolRequests:
    @pytest.mark.asyncio
    async def test_same_symbol_twice_before_completion(self, sink, formatter, cooldown) -> None:
        gate = asyncio.Event()
        orchestrator = _make_orchestrator()

        async def slow_generate(symbol: str):
            await gate.wait()
            return make_signal(symbol=symbol)

        orchestrator.generate_signal = AsyncMock(side_effect=slow_generate)
        dispatcher = CommandDispatcher(orchestrator, sink, formatter, cooldown, ".JK")

        await dispatcher.dispatch(CHAT, "BBCA")
        await asyncio.sleep(0)
        await dispatcher.dispatch(CHAT, "bbca")
        gate.set()
        await dispatcher.tasks.join()

        assert orchestrator.generate_signal.await_count == 1
        assert any("already being analyzed" in text for text in sink.texts(CHAT))

    @pytest.mark.asyncio
    async def test_symbol_can_be_retried_after_failure(self, dispatcher, orchestrator) -> None:
        orchestrator.generate_signal.side_effect = UpstreamFetchError("timeout")
        await dispatcher.dispatch(CHAT, "BBCA")
        await dispatcher.tasks.join()

        await dispatcher.dispatch(CHAT, "BBCA")
        await dispatcher.tasks.join()

        assert orchestrator.generate_signal.await_count == 2
