"""Abstract quote source interface.

The orchestrator depends only on this contract, keeping
provider-specific details isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod

from signalbot.models import PriceBar


class QuoteSource(ABC):
    """Abstract base class for market-data providers."""

    @abstractmethod
    async def fetch_bars(self, symbol: str) -> list[PriceBar]:
        """Return the chronological bar series for an already-normalized symbol.

        Raises:
            UpstreamFetchError: provider unavailable or no usable data.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release HTTP resources."""
        ...
