"""Telegram message rendering (HTML parse mode).

Every user-visible text the bot sends is built here so that the
orchestrator, scheduler and command dispatcher never deal with markup.
Free text coming from the model is HTML-escaped before embedding.
"""

from datetime import datetime, tzinfo
from decimal import Decimal
from html import escape

from signalbot.models import BatchSummary, Signal, compute_risk_reward, utc_now

_RULE = "━" * 40
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_STOCKS_PER_ROW = 5

_DIRECTION_EMOJI = {
    "BUY": "🟢",
    "SELL": "🔴",
    "WAIT": "🟡",
    "HOLD": "🟡",
}

WELCOME_TEXT = f"""🤖 <b>Welcome to Trading Signal Bot!</b> 🤖

📈 <b>Available Commands:</b>

🔍 <b>Single Stock Analysis:</b>
   Send a stock symbol (e.g., BBCA, BBRI, ANTM)
   Example: <code>ANTM</code>

📊 <b>Bulk Analysis:</b>
   /bulk - Analyze all configured stocks
   /summary - Get summary of all stocks
   /stocks - Show all configured stocks

❓ <b>Help:</b>
   /help - Show this help message
   /start - Start the bot

{_RULE}"""

HELP_TEXT = f"""📚 <b>Help &amp; Instructions</b> 📚

🔍 <b>How to use:</b>
   1. Send a stock symbol to get a trading signal
   2. Wait for the analysis to complete
   3. Receive a detailed signal with buy/sell levels

📊 <b>Available Commands:</b>
   /stocks - Show all configured stocks
   /bulk - Analyze all configured stocks (individual signals)
   /summary - Analyze all configured stocks (summary only)
   /help - Show this help message
   /start - Start the bot

📊 <b>Signal Types:</b>
   🟢 BUY - Good opportunity to buy
   🔴 SELL - Consider selling
   🟡 WAIT - Hold current position

💰 <b>Signal Information:</b>
   • Buy Price: Recommended entry price
   • Target Price: Profit target
   • Stop Loss: Risk management level
   • Confidence: AI confidence level (0-100%)
   • Risk-Reward Ratio: Risk vs potential reward

⚠️ <b>Disclaimer:</b>
   This is for educational purposes only.
   Always do your own research before trading.

{_RULE}"""

UNKNOWN_COMMAND_TEXT = "❓ Unknown command. Send /help for available commands."
BULK_STARTED_TEXT = (
    "🚀 Starting bulk analysis for all configured stocks. "
    "You will receive signals as they are generated."
)
SUMMARY_STARTED_TEXT = (
    "📊 Starting bulk analysis with summary. "
    "You will receive a summary once complete."
)
ALREADY_RUNNING_TEXT = (
    "⏳ A bulk analysis is already running. "
    "Please wait for its results before starting another."
)


def _price(value: Decimal) -> str:
    return f"{value:,.2f}"


class MessageFormatter:
    """Renders signals, summaries and status texts for one display timezone."""

    def __init__(self, display_tz: tzinfo) -> None:
        self._tz = display_tz

    def _time(self, value: datetime) -> str:
        return value.astimezone(self._tz).strftime(_TIME_FORMAT)

    def signal(self, signal: Signal) -> str:
        direction = signal.direction.strip().upper()
        emoji = _DIRECTION_EMOJI.get(direction, "⚪")
        lines = [
            f"{emoji} <b>TRADING SIGNAL: {escape(direction)} {escape(signal.symbol)}</b> {emoji}",
            "",
            f"💰 <b>Buy Price:</b> {_price(signal.entry_price)}",
            f"🎯 <b>Target Price:</b> {_price(signal.target_price)}",
            f"🛑 <b>Stop Loss:</b> {_price(signal.stop_price)}",
        ]

        rr = compute_risk_reward(signal)
        if rr is not None:
            lines += [
                "",
                "⚖️ <b>Risk-Reward Analysis:</b>",
                f"   💸 Risk: {_price(rr.risk)}",
                f"   💰 Reward: {_price(rr.reward)}",
                f"   📊 Ratio: 1:{rr.ratio:.2f}",
            ]

        lines += [
            "",
            f"📈 <b>Confidence Level:</b> {signal.confidence}%",
            "",
            "📝 <b>Signal Reason:</b>",
            escape(signal.rationale),
        ]

        bar = signal.latest_bar
        if bar is not None:
            lines += [
                "",
                "📊 <b>Current OHLCV Data:</b>",
                f"   📈 Open: {_price(bar.open)}",
                f"   🔺 High: {_price(bar.high)}",
                f"   🔻 Low: {_price(bar.low)}",
                f"   📉 Close: {_price(bar.close)}",
                f"   📊 Volume: {bar.volume:,}",
                "",
                "📋 <b>Technical Analysis:</b>",
                escape(bar.explanation),
            ]

        lines += ["", f"⏰ <b>Generated At:</b> {self._time(signal.generated_at)}", "", _RULE]
        return "\n".join(lines)

    def summary(self, summary: BatchSummary) -> str:
        lines = [
            "📊 <b>BULK SIGNAL ANALYSIS SUMMARY</b> 📊",
            "",
            "📈 <b>Analysis Results:</b>",
            f"   ✅ Total Analyzed: {summary.total_analyzed} stocks",
            f"   🟢 Buy Signals: {len(summary.buy)}",
            f"   🔴 Sell Signals: {len(summary.sell)}",
            f"   🟡 Hold Signals: {len(summary.hold)}",
            f"   ❌ Failed: {len(summary.failed)}",
            "",
            f"⏰ <b>Generated At:</b> {self._time(summary.generated_at)}",
            "",
            _RULE,
        ]

        if summary.buy:
            lines += ["", "🟢 <b>BUY SIGNALS:</b>"]
            for sig in summary.buy:
                line = (
                    f"   • {escape(sig.symbol)} - Confidence: {sig.confidence}% - "
                    f"Buy: {_price(sig.entry_price)} - Target: {_price(sig.target_price)} - "
                    f"Cut Loss: {_price(sig.stop_price)}"
                )
                lines.append(line + self._ratio_suffix(sig))

        if summary.sell:
            lines += ["", "🔴 <b>SELL SIGNALS:</b>"]
            for sig in summary.sell:
                line = (
                    f"   • {escape(sig.symbol)} - Confidence: {sig.confidence}% - "
                    f"Stop Loss: {_price(sig.stop_price)}"
                )
                lines.append(line + self._ratio_suffix(sig))

        if summary.hold:
            lines += ["", "🟡 <b>HOLD SIGNALS:</b>"]
            for sig in summary.hold:
                lines.append(f"   • {escape(sig.symbol)} - Confidence: {sig.confidence}%")

        if summary.failed:
            lines += ["", "❌ <b>FAILED ANALYSIS:</b>"]
            lines += [f"   • {escape(symbol)}" for symbol in summary.failed]

        lines += ["", _RULE]
        return "\n".join(lines)

    @staticmethod
    def _ratio_suffix(signal: Signal) -> str:
        rr = compute_risk_reward(signal)
        return f" - R:R 1:{rr.ratio:.2f}" if rr is not None else ""

    def request_received(self, total: int, delay_seconds: float) -> str:
        estimated_minutes = int(total * delay_seconds) // 60 + 1
        return "\n".join(
            [
                "📋 <b>BULK ANALYSIS REQUEST RECEIVED</b> 📋",
                "",
                "📊 <b>Analysis Details:</b>",
                f"   📈 Total Stocks: {total}",
                f"   ⏱️ Estimated Time: {estimated_minutes} minutes",
                "   🔄 Status: Processing...",
                "",
                f"⏰ <b>Request Time:</b> {self._time(utc_now())}",
                "",
                "Please wait while we analyze all stocks. "
                "You will receive a summary once the analysis is complete.",
                "",
                _RULE,
            ]
        )

    def stocks_list(self, symbols: list[str]) -> str:
        lines = [
            "📋 <b>CONFIGURED STOCKS LIST</b> 📋",
            "",
            f"📈 <b>Total Stocks:</b> {len(symbols)}",
            "",
            "📊 <b>Stock Symbols:</b>",
        ]
        for i in range(0, len(symbols), _STOCKS_PER_ROW):
            row = symbols[i : i + _STOCKS_PER_ROW]
            lines.append("   " + " • ".join(f"<code>{escape(s)}</code>" for s in row))
        lines += [
            "",
            "💡 <b>Usage:</b>",
            "   • Send any symbol above to get trading signal",
            "   • Use /bulk to analyze all stocks",
            "   • Use /summary for bulk analysis summary",
            "",
            f"⏰ <b>Last Updated:</b> {self._time(utc_now())}",
            "",
            _RULE,
        ]
        return "\n".join(lines)

    @staticmethod
    def analyzing(symbol: str) -> str:
        return f"🔍 Analyzing {escape(symbol)}... Please wait."

    @staticmethod
    def already_analyzing(symbol: str) -> str:
        return f"⏳ {escape(symbol)} is already being analyzed. The signal will arrive shortly."

    @staticmethod
    def analysis_failed(symbol: str, error: Exception) -> str:
        return f"❌ Failed to analyze {escape(symbol)}: {escape(str(error))}"

    @staticmethod
    def cooldown(symbol: str, remaining_seconds: float) -> str:
        minutes = max(1, round(remaining_seconds / 60))
        return (
            f"⏳ A signal for {escape(symbol)} was generated recently. "
            f"Try again in about {minutes} minute(s)."
        )
