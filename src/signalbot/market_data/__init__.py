"""Market data layer -- OHLCV bars from Yahoo Finance."""

from signalbot.market_data.quote_source import QuoteSource
from signalbot.market_data.yahoo_client import YahooQuoteSource

__all__ = ["QuoteSource", "YahooQuoteSource"]
