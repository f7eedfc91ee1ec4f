"""Yahoo Finance chart API client via httpx async.

Fetches intraday candles from the public v8 chart endpoint. The response is
column-oriented (parallel timestamp/open/high/low/close/volume arrays); rows
with a missing or zero price are dropped before the series is returned.
"""

from datetime import datetime, timezone
from decimal import Decimal

import httpx

from signalbot.config import QuoteSettings
from signalbot.exceptions import UpstreamFetchError
from signalbot.logging import get_logger
from signalbot.market_data.quote_source import QuoteSource
from signalbot.models import PriceBar

logger = get_logger(__name__)

# The chart endpoint rejects requests without a browser-like user agent.
_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Referer": "https://finance.yahoo.com/",
}


def _price(column: list, index: int) -> Decimal | None:
    """Return column[index] as Decimal, or None when absent or zero."""
    if index >= len(column) or column[index] is None:
        return None
    value = Decimal(str(column[index]))
    return value if value != 0 else None


def parse_chart_response(symbol: str, payload: dict) -> list[PriceBar]:
    """Convert a chart API payload into a chronological PriceBar list.

    Raises:
        UpstreamFetchError: when the payload carries no usable bars.
    """
    chart = payload.get("chart") or {}
    if chart.get("error"):
        raise UpstreamFetchError(f"Yahoo Finance error for {symbol}: {chart['error']}")

    results = chart.get("result") or []
    if not results:
        raise UpstreamFetchError(f"no data returned for symbol: {symbol}")

    result = results[0]
    quotes = (result.get("indicators") or {}).get("quote") or []
    if not quotes:
        raise UpstreamFetchError(f"no quote data available for symbol: {symbol}")

    quote = quotes[0]
    opens = quote.get("open") or []
    highs = quote.get("high") or []
    lows = quote.get("low") or []
    closes = quote.get("close") or []
    volumes = quote.get("volume") or []

    bars: list[PriceBar] = []
    for i, ts in enumerate(result.get("timestamp") or []):
        prices = [_price(col, i) for col in (opens, highs, lows, closes)]
        if any(p is None for p in prices):
            continue
        volume = volumes[i] if i < len(volumes) and volumes[i] is not None else 0
        bars.append(
            PriceBar(
                timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
                open=prices[0],
                high=prices[1],
                low=prices[2],
                close=prices[3],
                volume=int(volume),
            )
        )

    if not bars:
        raise UpstreamFetchError(f"no valid OHLC data found for symbol: {symbol}")

    bars.sort(key=lambda bar: bar.timestamp)
    return bars


class YahooQuoteSource(QuoteSource):
    """Concrete quote source backed by the Yahoo Finance chart API."""

    def __init__(
        self,
        settings: QuoteSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(
            timeout=settings.timeout_seconds,
            headers=_HEADERS,
        )

    async def fetch_bars(self, symbol: str) -> list[PriceBar]:
        """Fetch one attempt of intraday bars; no retry at this layer."""
        url = f"{self._settings.base_url}/{symbol}"
        params = {
            "interval": self._settings.interval,
            "range": self._settings.data_range,
        }
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamFetchError(
                f"Yahoo Finance returned status {exc.response.status_code} for {symbol}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamFetchError(
                f"failed to fetch data from Yahoo Finance for {symbol}: {exc}"
            ) from exc

        bars = parse_chart_response(symbol, payload)
        logger.debug("bars_fetched", symbol=symbol, count=len(bars))
        return bars

    async def close(self) -> None:
        await self._client.aclose()
