"""The single-threaded event loop that owns AppState."""

import curses
import time
from collections.abc import Callable

from tickerwatch.logging import logger
from tickerwatch.orchestrator import FetchOrchestrator
from tickerwatch.state import AppState, Editing
from tickerwatch.ui import Renderer, decode_key
from tickerwatch.utils import MarketStatus, market_status

INPUT_TIMEOUT_MS = 100
MARKET_CHECK_SECONDS = 60


class EventLoop:
    """
    🔁 Drives AppState one tick at a time.

    Each tick drains finished fetches, waits up to INPUT_TIMEOUT_MS for one key,
    applies everything to AppState in arrival order, kicks off the periodic
    refresh when it is due, and draws a snapshot.
    """

    def __init__(
        self,
        screen,
        state: AppState,
        orchestrator: FetchOrchestrator,
        renderer: Renderer,
        refresh_interval: float = 300,
        market_clock: Callable[[], MarketStatus] = market_status,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.screen = screen
        self.state = state
        self.orchestrator = orchestrator
        self.renderer = renderer
        self.refresh_interval = refresh_interval
        self._market_clock = market_clock
        self._clock = clock
        self._last_refresh = clock()
        self._market: MarketStatus | None = None
        self._market_checked_at: float | None = None

    @property
    def market(self) -> MarketStatus | None:
        now = self._clock()
        if self._market_checked_at is None or now - self._market_checked_at >= MARKET_CHECK_SECONDS:
            self._market = self._market_clock()
            self._market_checked_at = now
        return self._market

    def tick(self) -> None:
        for result in self.orchestrator.poll():
            self.state.handle(result)

        event = decode_key(self.screen.getch())
        if event is not None:
            self.state.handle(event)

        self._maybe_auto_refresh()

        if self.state.running:
            self.renderer.draw(self.state.snapshot(), self.market)

    def _maybe_auto_refresh(self) -> None:
        if self.refresh_interval <= 0 or not self.state.running:
            return
        now = self._clock()
        if now - self._last_refresh < self.refresh_interval:
            return
        self._last_refresh = now
        if isinstance(self.state.mode, Editing) or self.market == "closed":
            return
        logger.info("Periodic refresh")
        self.state.refresh()

    def run(self) -> None:
        self.renderer.draw(self.state.snapshot(), self.market)
        while self.state.running:
            self.tick()


def run_app(
    stdscr,
    state: AppState,
    orchestrator: FetchOrchestrator,
    refresh_interval: float,
) -> None:
    """curses.wrapper target: set up the screen and run until quit."""
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    # Raw mode so Ctrl-S and Ctrl-C arrive as keys instead of flow control/SIGINT
    curses.raw()
    stdscr.keypad(True)
    stdscr.timeout(INPUT_TIMEOUT_MS)

    EventLoop(
        stdscr,
        state,
        orchestrator,
        Renderer(stdscr),
        refresh_interval=refresh_interval,
    ).run()
