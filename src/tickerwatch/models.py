"""Data models for tickerwatch."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SYMBOLS = ["PLTR", "NBIS", "GOOGL", "NVDA", "MSFT", "TSLA", "SLDP", "IREN"]
DEFAULT_PERIOD_DAYS = 90

_SYMBOL_RE = re.compile(r"^[A-Z0-9][A-Z0-9.\-^=]{0,14}$")


def normalize_symbol(raw: str) -> str:
    """
    Normalize and validate a ticker symbol.

    Args:
        raw: Symbol as typed by the user or read from config (e.g., " aapl ")

    Returns:
        The stripped, uppercased symbol (e.g., "AAPL")

    Raises:
        ValueError: If the symbol is empty or contains invalid characters
    """
    symbol = raw.strip().upper()
    if not _SYMBOL_RE.match(symbol):
        raise ValueError(f"Invalid symbol: {raw.strip()!r}")
    return symbol


class FailureReason(str, Enum):
    """Why a symbol has no analysis to show."""

    NETWORK_ERROR = "network_error"
    UNKNOWN_SYMBOL = "unknown_symbol"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    INSUFFICIENT_DATA = "insufficient_data"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class TimeRange(str, Enum):
    """Chart window shown in the overview and detail screens."""

    ONE_DAY = "1D"
    FIVE_DAYS = "5D"
    ONE_MONTH = "1M"
    SIX_MONTHS = "6M"

    @property
    def points(self) -> int:
        """Number of trailing daily closes covered by this range."""
        return {"1D": 2, "5D": 5, "1M": 30, "6M": 180}[self.value]

    def next(self) -> TimeRange:
        members = list(TimeRange)
        return members[(members.index(self) + 1) % len(members)]

    def previous(self) -> TimeRange:
        members = list(TimeRange)
        return members[(members.index(self) - 1) % len(members)]


class PricePoint(BaseModel):
    """A single daily close."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Bar timestamp (UTC)")
    price: float = Field(..., gt=0, description="Close price")
    volume: int | None = Field(None, ge=0, description="Traded volume, if known")


class AnalysisResult(BaseModel):
    """
    📈 Indicators and projection derived from one price series.

    Indicators that need more history than the series holds are None and
    rendered as "n/a". Results are never mutated; a refresh replaces them.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., description="Stock ticker symbol (e.g., 'AAPL')")
    current_price: float = Field(..., description="Last close in the series")
    sma_10: float | None = Field(None, description="10-period simple moving average")
    sma_50: float | None = Field(None, description="50-period simple moving average")
    ema_20: float | None = Field(None, description="20-period exponential moving average")
    trend_percent: float = Field(0.0, description="Percent change over the lookback")
    predictions: tuple[float, ...] = Field(
        (), description="Projected prices for the next periods"
    )
    series: tuple[PricePoint, ...] = Field(
        (), description="Series the analysis was computed from"
    )

    @property
    def closes(self) -> list[float]:
        return [point.price for point in self.series]


class Pending(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["pending"] = "pending"


class Ready(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["ready"] = "ready"
    result: AnalysisResult


class Failed(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["failed"] = "failed"
    reason: FailureReason
    message: str = ""


FetchState = Annotated[Pending | Ready | Failed, Field(discriminator="status")]


class FetchResult(BaseModel):
    """A completed fetch, tagged with the generation it was requested under."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    generation: int
    state: FetchState


class Key(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"
    ENTER = "enter"
    ESCAPE = "escape"
    BACKSPACE = "backspace"
    DELETE = "delete"
    SAVE = "save"
    QUIT = "quit"
    CHAR = "char"


class KeyEvent(BaseModel):
    """A decoded key press. `char` is set only for Key.CHAR."""

    model_config = ConfigDict(frozen=True)

    key: Key
    char: str | None = None

    @classmethod
    def of(cls, char: str) -> KeyEvent:
        return cls(key=Key.CHAR, char=char)


class StockConfig(BaseModel):
    """Persisted symbol list and analysis period."""

    symbols: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SYMBOLS),
        min_length=1,
        description="Tracked ticker symbols, in display order",
    )
    analysis_period_days: int = Field(
        DEFAULT_PERIOD_DAYS, gt=0, description="Days of history to fetch"
    )

    @field_validator("symbols")
    @classmethod
    def _normalize_symbols(cls, value: list[str]) -> list[str]:
        symbols: list[str] = []
        for raw in value:
            symbol = normalize_symbol(raw)
            if symbol not in symbols:
                symbols.append(symbol)
        return symbols
