"""Per-symbol cooldown cache for signal spam prevention.

Tracks when a signal was last produced for each symbol and answers whether
a new one may be generated. Entries are never evicted: the symbol universe
is small and operator-configured.

Access is guarded by an asyncio readers/writer lock: any number of
concurrent readers, or one writer with no readers.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from signalbot.logging import get_logger

logger = get_logger(__name__)


class ReadWriteLock:
    """Readers/writer lock for coroutines on one event loop.

    Writers are preferred: once a writer is waiting, new readers queue
    behind it so a stream of reads cannot starve a write.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._writer and self._writers_waiting == 0
            )
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


class CooldownCache:
    """Last-signal timestamps per symbol, gated by a cooldown window.

    Args:
        cooldown_seconds: Minimum time between two signals for one symbol.
        clock: Monotonic time source in seconds; injectable for tests.
    """

    def __init__(
        self,
        cooldown_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = cooldown_seconds
        self._clock = clock
        self._last_signal: dict[str, float] = {}
        self._lock = ReadWriteLock()

    @property
    def window(self) -> float:
        return self._window

    async def can_generate(self, symbol: str) -> bool:
        """True if the symbol was never recorded or its window has elapsed."""
        return await self.remaining(symbol) == 0.0

    async def remaining(self, symbol: str) -> float:
        """Seconds left before ``symbol`` may be generated again (0.0 if allowed)."""
        async with self._lock.read():
            last = self._last_signal.get(symbol)
        if last is None:
            return 0.0
        elapsed = self._clock() - last
        return max(0.0, self._window - elapsed)

    async def record(self, symbol: str) -> None:
        """Set the symbol's last-signal time to now, overwriting any previous value."""
        async with self._lock.write():
            self._last_signal[symbol] = self._clock()
        logger.debug("cooldown_recorded", symbol=symbol, window_seconds=self._window)
