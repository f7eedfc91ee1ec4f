"""Shared data models for the stock signal bot.

CRITICAL: All prices use Decimal. Never use float for prices, risk or reward.
Timestamps are timezone-aware datetimes in UTC.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Direction(str, Enum):
    """Summary bucket a signal falls into."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class PriceBar:
    """One OHLCV candle. A fetched series is chronological, one bar per interval."""

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int


@dataclass(frozen=True)
class LatestBarAnalysis:
    """Latest-bar annotation returned by the inference call."""

    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int
    explanation: str = ""


@dataclass(frozen=True)
class Signal:
    """AI-generated trading recommendation for a single symbol.

    ``direction`` keeps the raw string returned by the model ("BUY", "SELL"
    or "WAIT" when it behaves); use ``bucket`` for classification.
    """

    symbol: str
    direction: str
    entry_price: Decimal
    target_price: Decimal
    stop_price: Decimal
    confidence: int  # 0-100
    rationale: str
    generated_at: datetime = field(default_factory=utc_now)
    latest_bar: LatestBarAnalysis | None = None

    @property
    def bucket(self) -> Direction:
        return classify_direction(self.direction)


@dataclass(frozen=True)
class RiskReward:
    """Presentation-only risk/reward figures for an actionable signal."""

    risk: Decimal
    reward: Decimal
    ratio: Decimal


@dataclass(frozen=True)
class BatchSummary:
    """Outcome of one batch run, grouped by bucket.

    Invariant: len(buy) + len(sell) + len(hold) + len(failed) == total_analyzed.
    """

    total_analyzed: int
    buy: tuple[Signal, ...] = ()
    sell: tuple[Signal, ...] = ()
    hold: tuple[Signal, ...] = ()
    failed: tuple[str, ...] = ()
    generated_at: datetime = field(default_factory=utc_now)


def classify_direction(direction: str) -> Direction:
    """Map a raw direction string to its summary bucket.

    Case-insensitive. Anything other than BUY or SELL (WAIT, HOLD, garbage)
    folds into HOLD so a malformed model answer degrades to "no action".
    """
    normalized = (direction or "").strip().upper()
    if normalized == "BUY":
        return Direction.BUY
    if normalized == "SELL":
        return Direction.SELL
    return Direction.HOLD


def compute_risk_reward(signal: Signal) -> RiskReward | None:
    """Derive risk, reward and reward/risk ratio from the signal's price levels.

    BUY:  risk = entry - stop, reward = target - entry
    SELL: risk = stop - entry, reward = entry - target

    Returns None for non-actionable signals, for non-finite levels, or when
    risk or reward is not strictly positive (the model does not guarantee
    coherent levels).
    """
    levels = (signal.entry_price, signal.target_price, signal.stop_price)
    if not all(level.is_finite() for level in levels):
        return None

    bucket = signal.bucket
    if bucket is Direction.BUY:
        risk = signal.entry_price - signal.stop_price
        reward = signal.target_price - signal.entry_price
    elif bucket is Direction.SELL:
        risk = signal.stop_price - signal.entry_price
        reward = signal.entry_price - signal.target_price
    else:
        return None

    if risk <= 0 or reward <= 0:
        return None
    return RiskReward(risk=risk, reward=reward, ratio=reward / risk)


def normalize_symbol(raw: str, market_suffix: str = "") -> str:
    """Trim and upper-case a ticker, appending the market suffix if missing.

    >>> normalize_symbol(" bbca ", ".JK")
    'BBCA.JK'
    """
    symbol = raw.strip().upper()
    suffix = market_suffix.upper()
    if suffix and not symbol.endswith(suffix):
        symbol += suffix
    return symbol
