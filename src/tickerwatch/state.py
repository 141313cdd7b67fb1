"""Application state machine.

AppState is owned by the event loop thread. Key presses and fetch results are
applied one at a time through `handle`, and the renderer only ever sees the
immutable `Snapshot` taken after a transition completed.
"""

from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field

from tickerwatch.edit import EditSession
from tickerwatch.exceptions import PersistenceError
from tickerwatch.logging import logger
from tickerwatch.models import (
    FetchResult,
    FetchState,
    Key,
    KeyEvent,
    Pending,
    StockConfig,
    TimeRange,
)

DEFAULT_RANGE = TimeRange.ONE_MONTH


class ConfigWriter(Protocol):
    def save_config(self, config: StockConfig) -> None: ...


class RefreshScheduler(Protocol):
    def refresh(self, symbols: list[str], period_days: int) -> dict[str, int]: ...


class Overview(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Literal["overview"] = "overview"
    time_range: TimeRange = DEFAULT_RANGE


class Detail(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Literal["detail"] = "detail"
    symbol: str
    time_range: TimeRange = DEFAULT_RANGE


class Editing(BaseModel):
    name: Literal["editing"] = "editing"
    session: EditSession
    # Range to restore when leaving edit mode
    previous_range: TimeRange = DEFAULT_RANGE


ViewMode = Overview | Detail | Editing


class Snapshot(BaseModel):
    """Read-only view of AppState handed to the renderer each tick."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["overview", "detail", "editing"]
    time_range: TimeRange
    symbols: tuple[str, ...]
    fetch_states: dict[str, FetchState]
    selected: int
    detail_symbol: str | None = None
    edit: EditSession | None = None
    period_days: int
    warning: str | None = None

    @property
    def selected_symbol(self) -> str | None:
        if not self.symbols:
            return None
        return self.symbols[self.selected]


class AppState:
    """
    🧭 Single source of truth for what is tracked, shown, selected and edited.

    Construction is the startup transition: the tracked symbols come from the
    loaded config (or a session override), every symbol starts Pending, and a
    refresh is issued straight away.

    Args:
        config: Last saved config
        store: Writer used when an edit session is saved
        orchestrator: Schedules fetches and returns their generation numbers
        symbols: Session-only symbol override (not persisted until a save)
        period_days: Session-only analysis period override
        warning: Startup message shown until the next key press
    """

    def __init__(
        self,
        config: StockConfig,
        store: ConfigWriter,
        orchestrator: RefreshScheduler,
        symbols: list[str] | None = None,
        period_days: int | None = None,
        warning: str | None = None,
    ) -> None:
        self.config = config
        self.symbols: list[str] = list(symbols or config.symbols)
        self.period_days = period_days or config.analysis_period_days
        self.mode: ViewMode = Overview()
        self.selected = 0
        self.warning = warning
        self.running = True
        self.fetch_states: dict[str, FetchState] = {}
        self._generations: dict[str, int] = {}
        self._store = store
        self._orchestrator = orchestrator
        self.refresh()

    # -- transitions -------------------------------------------------------

    def handle(self, event: KeyEvent | FetchResult) -> None:
        if isinstance(event, FetchResult):
            self.apply_fetch_result(event)
        else:
            self.handle_key(event)

    def handle_key(self, event: KeyEvent) -> None:
        self.warning = None

        if event.key is Key.QUIT:
            self.quit()
        elif isinstance(self.mode, Editing):
            self._handle_editing_key(self.mode, event)
        elif isinstance(self.mode, Detail):
            self._handle_detail_key(self.mode, event)
        else:
            self._handle_overview_key(self.mode, event)

    def apply_fetch_result(self, result: FetchResult) -> bool:
        """
        Store a fetch result if it answers the newest request for a tracked symbol.

        Returns:
            True if the FetchState was updated. The view mode never changes.
        """
        if result.symbol not in self.fetch_states:
            logger.debug("Ignoring result for untracked symbol={symbol}", symbol=result.symbol)
            return False
        if self._generations.get(result.symbol) != result.generation:
            logger.debug(
                "Ignoring superseded result symbol={symbol} generation={generation}",
                symbol=result.symbol,
                generation=result.generation,
            )
            return False
        self.fetch_states[result.symbol] = result.state
        return True

    def refresh(self) -> None:
        """Reset every tracked symbol to Pending and request fresh data."""
        self.fetch_states = {symbol: Pending() for symbol in self.symbols}
        self._generations.update(self._orchestrator.refresh(list(self.symbols), self.period_days))

    def quit(self) -> None:
        logger.info("Quit requested")
        self.running = False

    def _handle_overview_key(self, mode: Overview, event: KeyEvent) -> None:
        if event.key is Key.LEFT:
            self._move_selection(-1)
        elif event.key is Key.RIGHT:
            self._move_selection(1)
        elif event.key is Key.UP:
            self.mode = Overview(time_range=mode.time_range.previous())
        elif event.key is Key.DOWN:
            self.mode = Overview(time_range=mode.time_range.next())
        elif event.key is Key.ENTER:
            if self.symbols:
                self.mode = Detail(symbol=self.symbols[self.selected], time_range=mode.time_range)
        elif event.key is Key.ESCAPE:
            self.quit()
        elif event.key is Key.CHAR:
            if event.char == "e":
                self.mode = Editing(
                    session=EditSession.start(self.symbols), previous_range=mode.time_range
                )
            elif event.char == "r":
                self.refresh()
            elif event.char == "q":
                self.quit()

    def _handle_detail_key(self, mode: Detail, event: KeyEvent) -> None:
        if event.key is Key.ESCAPE:
            self.mode = Overview(time_range=mode.time_range)
        elif event.key is Key.UP:
            self.mode = mode.model_copy(update={"time_range": mode.time_range.previous()})
        elif event.key is Key.DOWN:
            self.mode = mode.model_copy(update={"time_range": mode.time_range.next()})
        elif event.key is Key.CHAR:
            if event.char == "r":
                self.refresh()
            elif event.char == "q":
                self.quit()

    def _handle_editing_key(self, mode: Editing, event: KeyEvent) -> None:
        session = mode.session
        if event.key is Key.ESCAPE:
            logger.info("Edit session discarded dirty={dirty}", dirty=session.dirty)
            self.mode = Overview(time_range=mode.previous_range)
        elif event.key is Key.SAVE:
            self._save(mode)
        elif event.key is Key.ENTER:
            session.submit_input()
        elif event.key is Key.BACKSPACE:
            session.backspace()
        elif event.key is Key.DELETE:
            session.delete_selected()
        elif event.key is Key.UP:
            session.move_cursor(-1)
        elif event.key is Key.DOWN:
            session.move_cursor(1)
        elif event.key is Key.CHAR and event.char:
            session.type_char(event.char)

    def _save(self, mode: Editing) -> None:
        session = mode.session
        if not session.symbols:
            session.error = "At least one symbol is required to save"
            return

        # The period stays the persisted one; a --period override is session-only.
        config = StockConfig(
            symbols=session.symbols,
            analysis_period_days=self.config.analysis_period_days,
        )
        try:
            self._store.save_config(config)
        except PersistenceError as e:
            session.error = e.message
            return

        logger.info("Committed symbols={symbols}", symbols=config.symbols)
        self.config = config
        self.symbols = list(config.symbols)
        self.selected = min(self.selected, len(self.symbols) - 1)
        self.mode = Overview(time_range=mode.previous_range)
        self.refresh()

    def _move_selection(self, delta: int) -> None:
        if not self.symbols:
            self.selected = 0
            return
        self.selected = max(0, min(self.selected + delta, len(self.symbols) - 1))

    # -- rendering ---------------------------------------------------------

    @property
    def time_range(self) -> TimeRange:
        if isinstance(self.mode, Editing):
            return self.mode.previous_range
        return self.mode.time_range

    def snapshot(self) -> Snapshot:
        mode = self.mode
        return Snapshot(
            mode=mode.name,
            time_range=self.time_range,
            symbols=tuple(self.symbols),
            fetch_states=dict(self.fetch_states),
            selected=self.selected,
            detail_symbol=mode.symbol if isinstance(mode, Detail) else None,
            edit=mode.session.model_copy(deep=True) if isinstance(mode, Editing) else None,
            period_days=self.period_days,
            warning=self.warning,
        )
