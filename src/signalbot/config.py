"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from signalbot.exceptions import ConfigurationError


def _split_csv(value: object) -> object:
    """Split a comma-separated env string into a list of trimmed, non-empty items."""
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class GeminiSettings(BaseSettings):
    """Gemini generative model settings (signal inference)."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_", env_file=".env", extra="ignore")

    api_key: SecretStr = SecretStr("")
    model: str = "gemini-2.0-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    temperature: float = 0.7
    top_p: float = 0.8
    top_k: int = 40
    timeout_seconds: float = 90.0


class TelegramSettings(BaseSettings):
    """Telegram bot settings (notification delivery and inbound commands)."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", env_file=".env", extra="ignore")

    bot_token: SecretStr = SecretStr("")
    chat_id: str = ""
    webhook_url: str = ""
    base_url: str = "https://api.telegram.org"
    timeout_seconds: float = 60.0


class QuoteSettings(BaseSettings):
    """Yahoo Finance chart API settings (market data)."""

    model_config = SettingsConfigDict(env_prefix="QUOTE_", env_file=".env", extra="ignore")

    base_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    interval: str = "5m"
    data_range: str = "2d"
    market_suffix: str = ".JK"  # IDX listing suffix appended to bare tickers
    timeout_seconds: float = 30.0


class SignalSettings(BaseSettings):
    """Signal orchestration parameters.

    The symbol universe is a comma-separated list (SIGNAL_STOCK_SYMBOLS).
    When it is empty the default symbol is used as a one-element universe.
    """

    model_config = SettingsConfigDict(env_prefix="SIGNAL_", env_file=".env", extra="ignore")

    stock_symbols: Annotated[list[str], NoDecode] = []
    default_stock_symbol: str = "INDY"
    cooldown_minutes: int = 15
    min_confidence_level: int = 70  # per-symbol push threshold for /bulk
    batch_delay_seconds: float = 3.0  # pause between symbols in a batch run

    @field_validator("stock_symbols", mode="before")
    @classmethod
    def _parse_symbols(cls, value: object) -> object:
        return _split_csv(value)

    @property
    def symbols(self) -> list[str]:
        """Configured symbol universe, falling back to the default symbol."""
        return list(self.stock_symbols) or [self.default_stock_symbol]


class ScheduleSettings(BaseSettings):
    """Daily trigger times ("HH:MM", 24-hour) and the timezone they are in."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULE_", env_file=".env", extra="ignore")

    times: Annotated[list[str], NoDecode] = []
    timezone: str = "Asia/Jakarta"

    @field_validator("times", mode="before")
    @classmethod
    def _parse_times(cls, value: object) -> object:
        return _split_csv(value)


class ServerSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_", env_file=".env", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 8080
    environment: str = "development"
    shutdown_timeout: int = 30  # seconds given to in-flight requests on shutdown

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    quote: QuoteSettings = Field(default_factory=QuoteSettings)
    signal: SignalSettings = Field(default_factory=SignalSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    def validate_credentials(self) -> None:
        """Fail fast when a required credential is missing.

        Raises:
            ConfigurationError: naming every missing variable.
        """
        missing = []
        if not self.gemini.api_key.get_secret_value():
            missing.append("GEMINI_API_KEY")
        if not self.telegram.bot_token.get_secret_value():
            missing.append("TELEGRAM_BOT_TOKEN")
        if not self.telegram.chat_id:
            missing.append("TELEGRAM_CHAT_ID")
        if missing:
            raise ConfigurationError(
                f"missing required configuration: {', '.join(missing)}"
            )
