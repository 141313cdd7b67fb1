import argparse
import curses
import os
from pathlib import Path

import sentry_sdk

from tickerwatch.config import settings
from tickerwatch.logging import configure_logging, logger
from tickerwatch.loop import run_app
from tickerwatch.market_data import fetch_history
from tickerwatch.models import normalize_symbol
from tickerwatch.orchestrator import FetchOrchestrator
from tickerwatch.persistence import ConfigStore
from tickerwatch.state import AppState
from tickerwatch.version import get_version_info


def _symbol(value: str) -> str:
    try:
        return normalize_symbol(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {number}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tickerwatch",
        description="Terminal dashboard with indicators and a short price projection.",
    )
    parser.add_argument(
        "-s",
        "--symbols",
        nargs="+",
        type=_symbol,
        metavar="SYM",
        help="Symbols to track for this session only (not saved)",
    )
    parser.add_argument(
        "-p",
        "--period",
        type=_positive_int,
        metavar="DAYS",
        help="Days of history to analyze for this session only (not saved)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="Config file to load and save (default: %(default)s)",
        default=settings.get_config_path(),
    )
    parser.add_argument("--version", action="version", version=get_version_info())
    args = parser.parse_args(argv)
    if args.symbols:
        args.symbols = list(dict.fromkeys(args.symbols))
    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(settings.get_log_path(), settings.log_level)

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.sentry_environment,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            integrations=[],
            attach_stacktrace=True,
        )
        logger.info(
            "Sentry initialized environment={environment} traces_sample_rate={traces_sample_rate}",
            environment=settings.sentry_environment,
            traces_sample_rate=settings.sentry_traces_sample_rate,
        )

    logger.info("Starting tickerwatch version={version}", version=get_version_info())

    store = ConfigStore(args.config)
    config, warning = store.load_or_default()
    if warning:
        logger.warning("Config fallback warning={warning}", warning=warning)

    orchestrator = FetchOrchestrator(
        fetch_history,
        horizon=settings.prediction_horizon,
        timeout=settings.fetch_timeout_seconds,
        max_workers=settings.max_fetch_workers,
    )
    # Keep Escape responsive; curses waits a full second by default.
    os.environ.setdefault("ESCDELAY", "25")
    try:
        state = AppState(
            config,
            store,
            orchestrator,
            symbols=args.symbols,
            period_days=args.period,
            warning=warning,
        )
        curses.wrapper(run_app, state, orchestrator, settings.refresh_interval_seconds)
    except KeyboardInterrupt:  # pragma: no cover
        logger.info("Interrupted")
    finally:
        orchestrator.shutdown()

    logger.info("Stopped tickerwatch")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
