"""Signal inference layer -- Gemini generative model over OHLCV bars."""

from signalbot.inference.client import SignalInference
from signalbot.inference.gemini_client import GeminiSignalInference, parse_signal_response

__all__ = ["GeminiSignalInference", "SignalInference", "parse_signal_response"]
