"""Daily price history from Polygon.io."""

from datetime import date, datetime, timedelta, timezone

import polars as pl
from polygon import RESTClient
from polygon.exceptions import AuthError, BadResponse

from tickerwatch.config import settings
from tickerwatch.exceptions import FetchError
from tickerwatch.logging import logger
from tickerwatch.models import FailureReason, PricePoint

_RATE_LIMIT_MARKERS = ("429", "too many", "exceeded the maximum requests")


def classify_error(exc: Exception) -> FailureReason:
    """Map a client exception onto the failure reasons shown to the user."""
    text = str(exc).lower()
    if any(marker in text for marker in _RATE_LIMIT_MARKERS):
        return FailureReason.RATE_LIMITED
    return FailureReason.NETWORK_ERROR


def build_series(rows: list[dict]) -> tuple[PricePoint, ...]:
    """
    Turn raw aggregate rows into a clean, ascending price series.

    Rows need `timestamp` (epoch milliseconds) and `close`; `volume` is optional.
    Rows without a positive close are dropped, and for duplicate timestamps the
    last row wins.
    """
    if not rows:
        return ()

    df = (
        pl.DataFrame(rows)
        .select(
            pl.col("timestamp").cast(pl.Int64),
            pl.col("close").cast(pl.Float64),
            (
                pl.col("volume").cast(pl.Float64)
                if "volume" in rows[0]
                else pl.lit(None, dtype=pl.Float64).alias("volume")
            ),
        )
        .drop_nulls(["timestamp", "close"])
        .filter(pl.col("close") > 0)
        .unique(subset="timestamp", keep="last", maintain_order=True)
        .sort("timestamp")
    )

    return tuple(
        PricePoint(
            timestamp=datetime.fromtimestamp(row["timestamp"] / 1000, tz=timezone.utc),
            price=row["close"],
            volume=int(row["volume"]) if row["volume"] is not None else None,
        )
        for row in df.iter_rows(named=True)
    )


def fetch_history(symbol: str, period_days: int) -> tuple[PricePoint, ...]:
    """
    Fetch daily closes for `symbol` covering the last `period_days` days.

    Args:
        symbol: Normalized ticker symbol (e.g., "AAPL")
        period_days: Calendar days of history to request

    Returns:
        Price points sorted ascending by timestamp

    Raises:
        FetchError: With reason UNKNOWN_SYMBOL when no bars come back,
            RATE_LIMITED on HTTP 429, NETWORK_ERROR for anything else
    """
    logger.info("Fetching history symbol={symbol} days={days}", symbol=symbol, days=period_days)

    end_date = date.today()
    start_date = end_date - timedelta(days=period_days)

    try:
        # One attempt, bounded by the fetch timeout
        client = RESTClient(
            api_key=settings.polygon_api_key,
            connect_timeout=settings.fetch_timeout_seconds,
            read_timeout=settings.fetch_timeout_seconds,
            retries=0,
        )
        aggs = list(
            client.list_aggs(
                symbol,
                1,
                "day",
                start_date.strftime("%Y-%m-%d"),
                end_date.strftime("%Y-%m-%d"),
                adjusted=True,
                sort="asc",
                limit=50000,
            )
        )
    except AuthError as e:
        raise FetchError(FailureReason.NETWORK_ERROR, f"Polygon auth failed: {e}") from e
    except BadResponse as e:
        raise FetchError(classify_error(e), f"Polygon error: {e}") from e
    except Exception as e:
        raise FetchError(classify_error(e), f"{type(e).__name__}: {e}") from e

    series = build_series(
        [
            {"timestamp": a.timestamp, "close": a.close, "volume": a.volume}
            for a in aggs
        ]
    )
    if not series:
        raise FetchError(FailureReason.UNKNOWN_SYMBOL, f"No data found for {symbol}")

    logger.debug("Fetched history symbol={symbol} points={points}", symbol=symbol, points=len(series))
    return series
