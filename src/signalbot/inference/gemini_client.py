"""Gemini signal inference via the generateContent REST endpoint.

Builds a prompt from the candle series, asks the model for a JSON verdict,
and parses the first ``{`` ... last ``}`` span of the answer into a Signal.
The model is free to wrap the JSON in prose or code fences.
"""

import json
from decimal import Decimal, InvalidOperation

import httpx

from signalbot.config import GeminiSettings
from signalbot.exceptions import UpstreamInferenceError
from signalbot.inference.client import SignalInference
from signalbot.logging import get_logger
from signalbot.models import LatestBarAnalysis, PriceBar, Signal, utc_now

logger = get_logger(__name__)

_INSTRUCTIONS = """\
### Instructions
Perform a technical analysis of the candlestick data above.

**IMPORTANT: risk-reward ratio 1:2**
- Every BUY or SELL signal MUST have a risk-reward ratio of at least 1:2.
- BUY: the target must be at least twice as far from the buy price as the stop loss.
- SELL: the target must be at least twice as far from the sell price as the stop loss.
- Example: buy 1000, stop 950 (risk 50) -> target at least 1100 (reward 100).
- The ratio may be relaxed slightly for a very strong setup; explain why.

Give a trading signal:
- Signal: "BUY", "SELL" or "WAIT"
- Ideal entry price, target price, stop loss
- Confidence level (0-100)
- Use technical analysis to detect:
  - candlestick patterns such as bullish engulfing, doji, hammer
  - 5 EMA / 20 EMA crossovers
  - support and resistance over the last 2 hours
  - RSI and MACD
  - breakouts on high volume
- Explain the reasoning behind the signal.

**Latest OHLCV analysis**
Report the latest open, high, low, close and volume, and a short narrative
describing the session's price action and momentum.

Answer with JSON only, in this format:
{
  "signal": "BUY",
  "buy_price": 2750,
  "target_price": 2850,
  "stop_loss": 2725,
  "confidence": 82,
  "reason": "Bullish engulfing on the 5-minute chart. 1:2 risk-reward met (risk 25, reward 100).",
  "ohlcv_analysis": {
    "open": 2740,
    "high": 2750,
    "low": 2730,
    "close": 2745,
    "volume": 80000,
    "explanation": "Price opened at 2740, ranged between 2730 and 2750 and closed at 2745 on rising volume."
  }
}
"""


def build_prompt(symbol: str, bars: list[PriceBar], interval: str = "5m") -> str:
    """Render the candle series and the answer contract into one prompt."""
    rows = [
        json.dumps(
            {
                "timestamp": bar.timestamp.isoformat(),
                "open": float(bar.open),
                "high": float(bar.high),
                "low": float(bar.low),
                "close": float(bar.close),
                "volume": bar.volume,
            }
        )
        for bar in bars
    ]
    header = (
        f"Analyze the stock {symbol} listed on the Indonesia Stock Exchange. "
        f"Below are {interval} candles, oldest first:\n\n"
    )
    return header + "candlestick_data = [\n" + ",\n".join(rows) + "\n]\n\n" + _INSTRUCTIONS


def _decimal(value: object, name: str) -> Decimal:
    try:
        result = Decimal(str(value if value is not None else 0))
    except InvalidOperation as exc:
        raise UpstreamInferenceError(f"invalid {name} in model response: {value!r}") from exc
    if not result.is_finite():
        raise UpstreamInferenceError(f"non-finite {name} in model response: {value!r}")
    return result


def _int(value: object, name: str) -> int:
    try:
        return int(float(str(value if value is not None else 0)))
    except (ValueError, OverflowError) as exc:
        raise UpstreamInferenceError(f"invalid {name} in model response: {value!r}") from exc


def parse_signal_response(symbol: str, text: str) -> Signal:
    """Parse the model's answer into a Signal for ``symbol``.

    Raises:
        UpstreamInferenceError: no JSON object found, or it does not decode.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise UpstreamInferenceError("no JSON found in model response")

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise UpstreamInferenceError(f"failed to decode signal JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise UpstreamInferenceError("signal JSON is not an object")

    latest_bar = None
    raw_bar = data.get("ohlcv_analysis")
    if isinstance(raw_bar, dict):
        latest_bar = LatestBarAnalysis(
            open=_decimal(raw_bar.get("open"), "ohlcv open"),
            high=_decimal(raw_bar.get("high"), "ohlcv high"),
            low=_decimal(raw_bar.get("low"), "ohlcv low"),
            close=_decimal(raw_bar.get("close"), "ohlcv close"),
            volume=_int(raw_bar.get("volume"), "ohlcv volume"),
            explanation=str(raw_bar.get("explanation") or ""),
        )

    confidence = _int(data.get("confidence"), "confidence")

    return Signal(
        symbol=symbol,
        direction=str(data.get("signal") or ""),
        entry_price=_decimal(data.get("buy_price"), "buy_price"),
        target_price=_decimal(data.get("target_price"), "target_price"),
        stop_price=_decimal(data.get("stop_loss"), "stop_loss"),
        confidence=max(0, min(100, confidence)),
        rationale=str(data.get("reason") or ""),
        generated_at=utc_now(),
        latest_bar=latest_bar,
    )


class GeminiSignalInference(SignalInference):
    """Concrete inference backed by Gemini ``generateContent``."""

    def __init__(
        self,
        settings: GeminiSettings,
        client: httpx.AsyncClient | None = None,
        interval: str = "5m",
    ) -> None:
        self._settings = settings
        self._interval = interval
        self._client = client or httpx.AsyncClient(timeout=settings.timeout_seconds)

    async def infer(self, symbol: str, bars: list[PriceBar]) -> Signal:
        prompt = build_prompt(symbol, bars, self._interval)
        url = f"{self._settings.base_url}/models/{self._settings.model}:generateContent"
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self._settings.temperature,
                "topP": self._settings.top_p,
                "topK": self._settings.top_k,
            },
        }
        headers = {"x-goog-api-key": self._settings.api_key.get_secret_value()}

        try:
            response = await self._client.post(url, json=body, headers=headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamInferenceError(
                f"Gemini returned status {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamInferenceError(f"failed to generate content: {exc}") from exc

        text = _extract_text(payload)
        signal = parse_signal_response(symbol, text)
        logger.debug(
            "signal_inferred",
            symbol=symbol,
            direction=signal.direction,
            confidence=signal.confidence,
        )
        return signal

    async def close(self) -> None:
        await self._client.aclose()


def _extract_text(payload: dict) -> str:
    """Pull the first text part out of a generateContent response."""
    candidates = payload.get("candidates") or []
    if not candidates:
        raise UpstreamInferenceError("no response generated from Gemini")
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [part.get("text", "") for part in parts if isinstance(part, dict)]
    if not any(texts):
        raise UpstreamInferenceError("no content parts in Gemini response")
    return "".join(texts)
