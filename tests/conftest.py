"""Shared pytest fixtures for tickerwatch tests."""

from datetime import datetime, timedelta, timezone

import pytest
from loguru import logger

from tickerwatch.models import PricePoint, StockConfig


@pytest.fixture(autouse=True)
def disable_loguru():
    """Disable loguru output during tests for cleaner output."""
    logger.disable("tickerwatch")
    yield
    logger.enable("tickerwatch")


def make_series(prices: list[float], volume: int | None = 1_000) -> tuple[PricePoint, ...]:
    """Daily price points starting 2024-01-02 UTC."""
    start = datetime(2024, 1, 2, tzinfo=timezone.utc)
    return tuple(
        PricePoint(timestamp=start + timedelta(days=i), price=price, volume=volume)
        for i, price in enumerate(prices)
    )


class FakeStore:
    """In-memory stand-in for ConfigStore."""

    def __init__(self, error: Exception | None = None) -> None:
        self.saved: list[StockConfig] = []
        self.error = error

    def save_config(self, config: StockConfig) -> None:
        if self.error is not None:
            raise self.error
        self.saved.append(config)


class FakeOrchestrator:
    """Records refresh calls and hands out increasing generations."""

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], int]] = []
        self.generation = 0
        self.issued: dict[str, int] = {}

    def refresh(self, symbols: list[str], period_days: int) -> dict[str, int]:
        self.calls.append((list(symbols), period_days))
        issued = {}
        for symbol in symbols:
            self.generation += 1
            issued[symbol] = self.generation
        self.issued.update(issued)
        return issued


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def fake_orchestrator() -> FakeOrchestrator:
    return FakeOrchestrator()
