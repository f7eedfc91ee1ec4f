"""Custom exceptions for the stock signal bot.

All collaborator and orchestration exceptions live here
to avoid circular imports between modules.
"""


class SignalBotError(Exception):
    """Base exception for all bot errors."""


class UpstreamFetchError(SignalBotError):
    """Raised when the quote source is unavailable or has no data for a symbol."""


class UpstreamInferenceError(SignalBotError):
    """Raised when the inference call fails or returns unparsable content."""


class ConfigurationError(SignalBotError):
    """Raised for invalid configuration (missing credentials, bad schedule entry)."""


class DeliveryError(SignalBotError):
    """Raised when a notification could not be delivered."""
