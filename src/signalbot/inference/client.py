"""Abstract signal inference interface."""

from abc import ABC, abstractmethod

from signalbot.models import PriceBar, Signal


class SignalInference(ABC):
    """Abstract base class for recommendation generators."""

    @abstractmethod
    async def infer(self, symbol: str, bars: list[PriceBar]) -> Signal:
        """Produce a recommendation for ``symbol`` from its bar series.

        Raises:
            UpstreamInferenceError: call failed or the answer was unparsable.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release HTTP resources."""
        ...
