from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import Literal

import pandas_market_calendars as mcal
import pytz

MarketStatus = Literal["open", "extended", "closed"]

NYC_TZ = pytz.timezone("America/New_York")


def _normalize_to_nyc_timezone(check_time: datetime) -> datetime:
    """Convert a datetime to NYC timezone, handling both naive and timezone-aware datetimes."""
    if check_time.tzinfo is None:
        # Naive datetimes are taken to be NYC local time
        return NYC_TZ.localize(check_time)
    return check_time.astimezone(NYC_TZ)


@lru_cache(maxsize=8)
def _get_market_schedule(target_date: date) -> tuple[datetime, datetime] | None:
    """
    Get NYSE open and close times for a specific date.

    Cached per date, so only the first check of a day builds the calendar.

    Returns:
        tuple[datetime, datetime] | None: (market_open, market_close) or None if market is closed
    """
    nyse = mcal.get_calendar("NYSE")
    schedule = nyse.schedule(
        start_date=target_date, end_date=target_date + timedelta(days=1)
    )

    if schedule.empty:
        return None

    market_open = schedule.iloc[0]["market_open"].to_pydatetime()
    market_close = schedule.iloc[0]["market_close"].to_pydatetime()
    if _normalize_to_nyc_timezone(market_open).date() != target_date:
        # Holiday: the schedule starts on the next trading day
        return None
    return market_open, market_close


def market_status(check_time: datetime | None = None, hours: int = 1) -> MarketStatus:
    """
    Classify the NYSE session at `check_time`.

    Args:
        check_time: Datetime to check (default: now)
        hours: How close to open/close still counts as "extended" (default: 1)

    Returns:
        "open" during the regular session, "extended" within `hours` of the
        open or close, "closed" otherwise (including weekends and holidays)
    """
    nyc_time = _normalize_to_nyc_timezone(check_time or datetime.now(NYC_TZ))

    schedule = _get_market_schedule(nyc_time.date())
    if schedule is None:
        return "closed"

    market_open, market_close = schedule
    if market_open <= nyc_time <= market_close:
        return "open"

    window = timedelta(hours=hours)
    if market_open - window <= nyc_time < market_open:
        return "extended"
    if market_close < nyc_time <= market_close + window:
        return "extended"
    return "closed"
