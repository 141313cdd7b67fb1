"""Exception hierarchy for tickerwatch."""

from __future__ import annotations

from tickerwatch.models import FailureReason


class TickerWatchError(Exception):
    """Base exception for tickerwatch errors."""

    message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class FetchError(TickerWatchError):
    """Market data for a single symbol could not be fetched."""

    message = "Failed to fetch market data"

    def __init__(self, reason: FailureReason, message: str | None = None):
        self.reason = reason
        super().__init__(message)


class InsufficientDataError(TickerWatchError):
    """The price series is too short for the requested computation."""

    message = "Insufficient data"


class ConfigError(TickerWatchError):
    """The persisted config file is unreadable or corrupt."""

    message = "Config file could not be read"


class PersistenceError(TickerWatchError):
    """The config file could not be written."""

    message = "Config file could not be saved"
