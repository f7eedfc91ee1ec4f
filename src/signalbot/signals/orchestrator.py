"""Signal orchestrator -- drives symbols through fetch -> infer -> classify -> report.

Single symbol: one quote fetch, one inference call, no retry, no delivery.
The caller decides what to do with the result or the error.

Batch: strictly sequential over the symbol list with a fixed pause between
symbols (the quote and inference services are rate-limited and metered).
A failing symbol is recorded and skipped; the batch always completes and
delivers exactly one summary to the default recipient. Only one batch may
run at a time; a second start request is rejected, not queued.
"""

from __future__ import annotations

import asyncio
import dataclasses
import uuid
from typing import TYPE_CHECKING

import structlog

from signalbot.background import BackgroundTasks
from signalbot.config import SignalSettings
from signalbot.exceptions import UpstreamFetchError
from signalbot.logging import get_logger
from signalbot.models import BatchSummary, Direction, Signal, utc_now

if TYPE_CHECKING:
    from signalbot.inference.client import SignalInference
    from signalbot.market_data.quote_source import QuoteSource
    from signalbot.notify.formatting import MessageFormatter
    from signalbot.notify.sink import NotificationSink

logger = get_logger(__name__)


class SignalOrchestrator:
    """Runs the single-symbol and batch signal pipelines.

    Args:
        quote_source: Market-data provider.
        inference: Recommendation generator.
        sink: Notification channel for batch output.
        formatter: Renders signals and summaries for the sink.
        settings: Batch delay and per-signal push threshold.
        symbols: Normalized symbol universe for batch runs.
        tasks: Registry for detached batch runs.
    """

    def __init__(
        self,
        quote_source: QuoteSource,
        inference: SignalInference,
        sink: NotificationSink,
        formatter: MessageFormatter,
        settings: SignalSettings,
        symbols: list[str],
        tasks: BackgroundTasks | None = None,
    ) -> None:
        self._quote_source = quote_source
        self._inference = inference
        self._sink = sink
        self._formatter = formatter
        self._settings = settings
        self._symbols: tuple[str, ...] = tuple(symbols)
        self._tasks = tasks or BackgroundTasks()
        self._batch_running = False

    # ──────────────────────────────────────────────
    # Single symbol
    # ──────────────────────────────────────────────

    async def generate_signal(self, symbol: str) -> Signal:
        """Fetch bars and infer a signal for an already-normalized symbol.

        Raises:
            UpstreamFetchError: quote source failed or returned no bars.
            UpstreamInferenceError: inference failed (propagated as raised).
        """
        logger.info("generating_signal", symbol=symbol)

        bars = await self._quote_source.fetch_bars(symbol)
        if not bars:
            raise UpstreamFetchError(f"no OHLC data available for {symbol}")
        logger.debug("bars_received", symbol=symbol, count=len(bars))

        signal = await self._inference.infer(symbol, bars)
        return dataclasses.replace(signal, symbol=symbol, generated_at=utc_now())

    # ──────────────────────────────────────────────
    # Batch
    # ──────────────────────────────────────────────

    async def run_batch(
        self,
        symbols: list[str] | None = None,
        *,
        deliver_each: bool = False,
        announce: bool = False,
    ) -> BatchSummary:
        """Analyze symbols one at a time and deliver a single summary.

        Args:
            symbols: Symbols to analyze; defaults to the configured universe.
            deliver_each: Push each signal at or above the confidence threshold
                as it is generated.
            announce: Send a "request received" notice before starting.

        Returns:
            The summary that was (or failed to be) delivered.
        """
        batch = list(symbols) if symbols is not None else list(self._symbols)
        total = len(batch)
        delay = self._settings.batch_delay_seconds

        with structlog.contextvars.bound_contextvars(batch_id=uuid.uuid4().hex[:8]):
            logger.info(
                "batch_started",
                total=total,
                deliver_each=deliver_each,
                announce=announce,
            )

            if announce:
                await self._deliver(self._formatter.request_received(total, delay))

            buckets: dict[Direction, list[Signal]] = {
                Direction.BUY: [],
                Direction.SELL: [],
                Direction.HOLD: [],
            }
            failed: list[str] = []

            for i, symbol in enumerate(batch, 1):
                logger.info("analyzing_symbol", symbol=symbol, progress=f"{i}/{total}")
                try:
                    signal = await self.generate_signal(symbol)
                except Exception as e:
                    logger.warning("symbol_failed", symbol=symbol, error=str(e))
                    failed.append(symbol)
                else:
                    buckets[signal.bucket].append(signal)
                    if (
                        deliver_each
                        and signal.confidence >= self._settings.min_confidence_level
                    ):
                        await self._deliver(self._formatter.signal(signal))

                if i < total:
                    await asyncio.sleep(delay)

            summary = BatchSummary(
                total_analyzed=total,
                buy=tuple(buckets[Direction.BUY]),
                sell=tuple(buckets[Direction.SELL]),
                hold=tuple(buckets[Direction.HOLD]),
                failed=tuple(failed),
                generated_at=utc_now(),
            )

            if await self._deliver(self._formatter.summary(summary)):
                logger.info("batch_summary_sent")

            logger.info(
                "batch_completed",
                total=summary.total_analyzed,
                buy=len(summary.buy),
                sell=len(summary.sell),
                hold=len(summary.hold),
                failed=len(summary.failed),
            )
            return summary

    def start_batch(self, *, deliver_each: bool = False, announce: bool = False) -> bool:
        """Start a batch over the configured universe without waiting for it.

        Returns:
            True if a run was started, False if one is already in progress.
        """
        if self._batch_running:
            logger.warning("batch_already_running")
            return False

        self._batch_running = True
        coro = self._run_exclusive(deliver_each=deliver_each, announce=announce)
        try:
            self._tasks.spawn(coro, name="batch-summary" if announce else "batch-each")
        except BaseException:
            coro.close()
            self._batch_running = False
            raise
        return True

    async def _run_exclusive(self, *, deliver_each: bool, announce: bool) -> None:
        try:
            await self.run_batch(deliver_each=deliver_each, announce=announce)
        finally:
            self._batch_running = False

    @property
    def tasks(self) -> BackgroundTasks:
        """Registry holding detached batch runs."""
        return self._tasks

    @property
    def batch_running(self) -> bool:
        """Whether a batch started via start_batch is still in flight."""
        return self._batch_running

    def configured_symbols(self) -> list[str]:
        """Return a copy of the configured symbol universe."""
        return list(self._symbols)

    async def _deliver(self, text: str) -> bool:
        """Send to the default recipient. Failures are logged, never raised or retried."""
        try:
            await self._sink.send(self._sink.default_chat_id, text)
        except Exception as e:
            logger.error("delivery_failed", error=str(e))
            return False
        return True
