"""Technical indicators and price projection over a daily close series.

Everything here is a pure function of its inputs: no I/O and no shared state.
"""

from collections.abc import Sequence

import polars as pl

from tickerwatch.exceptions import InsufficientDataError
from tickerwatch.models import AnalysisResult, PricePoint, TimeRange

TREND_LOOKBACK = 5


def sma(prices: Sequence[float], period: int) -> float:
    """
    Simple moving average of the last `period` prices.

    Raises:
        InsufficientDataError: If fewer than `period` prices are available
    """
    if period <= 0 or len(prices) < period:
        raise InsufficientDataError(
            f"SMA({period}) needs {period} prices, got {len(prices)}"
        )
    window = pl.Series("price", [float(p) for p in prices[-period:]])
    return float(window.mean())  # type: ignore[arg-type]


def ema(prices: Sequence[float], period: int) -> list[float]:
    """
    Exponential moving average sequence.

    The first value is the SMA of the first `period` prices; every later price
    is folded in with alpha = 2 / (period + 1).

    Raises:
        InsufficientDataError: If fewer than `period` prices are available
    """
    if period <= 0 or len(prices) < period:
        raise InsufficientDataError(
            f"EMA({period}) needs {period} prices, got {len(prices)}"
        )
    alpha = 2.0 / (period + 1)
    values = [sma(prices[:period], period)]
    for price in prices[period:]:
        values.append(alpha * price + (1 - alpha) * values[-1])
    return values


def trend_percent(prices: Sequence[float], lookback: int = TREND_LOOKBACK) -> float:
    """Percent change from `lookback` points ago to the last price, 0.0 if too short."""
    if len(prices) < lookback + 1:
        return 0.0
    base = prices[-1 - lookback]
    return (prices[-1] - base) / base * 100


def predict(prices: Sequence[float], horizon: int) -> list[float]:
    """
    Project `horizon` prices along an ordinary least-squares line.

    Price is regressed on its index over the whole series. A single price or a
    perfectly flat series yields a flat projection at the last price.
    """
    if horizon <= 0 or not prices:
        return []
    n = len(prices)
    if n == 1 or max(prices) == min(prices):
        return [float(prices[-1])] * horizon

    frame = pl.DataFrame(
        {"x": [float(i) for i in range(n)], "y": [float(p) for p in prices]}
    )
    x_mean = (n - 1) / 2
    y_mean = frame["y"].mean()
    stats = frame.select(
        ((pl.col("x") - x_mean) * (pl.col("y") - y_mean)).sum().alias("sxy"),
        ((pl.col("x") - x_mean) ** 2).sum().alias("sxx"),
    ).row(0)
    slope = stats[0] / stats[1]
    intercept = y_mean - slope * x_mean  # type: ignore[operator]
    return [intercept + slope * (n + i) for i in range(horizon)]


def price_range(prices: Sequence[float]) -> tuple[float, float]:
    """Return (high, low) of the prices."""
    if not prices:
        raise InsufficientDataError("No prices to compute a range from")
    return max(prices), min(prices)


def volatility(prices: Sequence[float]) -> float:
    """Standard deviation of simple returns, as a percentage."""
    if len(prices) < 2:
        return 0.0
    returns = pl.Series("price", [float(p) for p in prices]).pct_change().drop_nulls()
    return float(returns.std(ddof=0) or 0.0) * 100  # type: ignore[arg-type]


def filter_by_range(
    series: Sequence[PricePoint], time_range: TimeRange
) -> list[PricePoint]:
    """Trailing points covered by `time_range`."""
    return list(series[-time_range.points :])


def _optional(func, *args):
    try:
        return func(*args)
    except InsufficientDataError:
        return None


def analyze(
    symbol: str, series: Sequence[PricePoint], horizon: int = 5
) -> AnalysisResult:
    """
    🧮 Compute indicators and projection for one symbol.

    Args:
        symbol: Normalized ticker symbol
        series: Price points sorted ascending by timestamp
        horizon: Number of projected prices

    Returns:
        AnalysisResult with unavailable indicators set to None

    Raises:
        InsufficientDataError: If the series has fewer than 2 points
    """
    if len(series) < 2:
        raise InsufficientDataError(
            f"{symbol} needs at least 2 prices, got {len(series)}"
        )

    prices = [point.price for point in series]
    ema_20 = _optional(ema, prices, 20)

    return AnalysisResult(
        symbol=symbol,
        current_price=prices[-1],
        sma_10=_optional(sma, prices, 10),
        sma_50=_optional(sma, prices, 50),
        ema_20=ema_20[-1] if ema_20 else None,
        trend_percent=trend_percent(prices),
        predictions=tuple(predict(prices, horizon)),
        series=tuple(series),
    )
