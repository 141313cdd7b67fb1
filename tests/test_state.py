"""Tests for the application state machine."""

import pytest
from conftest import FakeOrchestrator, FakeStore, make_series

from tickerwatch.analysis import analyze
from tickerwatch.exceptions import PersistenceError
from tickerwatch.models import (
    FailureReason,
    Failed,
    FetchResult,
    Key,
    KeyEvent,
    Pending,
    Ready,
    StockConfig,
    TimeRange,
)
from tickerwatch.state import AppState, Detail, Editing, Overview

LEFT = KeyEvent(key=Key.LEFT)
RIGHT = KeyEvent(key=Key.RIGHT)
UP = KeyEvent(key=Key.UP)
DOWN = KeyEvent(key=Key.DOWN)
ENTER = KeyEvent(key=Key.ENTER)
ESCAPE = KeyEvent(key=Key.ESCAPE)
DELETE = KeyEvent(key=Key.DELETE)
SAVE = KeyEvent(key=Key.SAVE)
QUIT = KeyEvent(key=Key.QUIT)


def press(state: AppState, *events: KeyEvent) -> None:
    for event in events:
        state.handle(event)


def type_text(state: AppState, text: str) -> None:
    press(state, *(KeyEvent.of(c) for c in text))


def ready(symbol: str, last_price: float = 10.0) -> Ready:
    return Ready(result=analyze(symbol, make_series([last_price - 1, last_price])))


@pytest.fixture
def config() -> StockConfig:
    return StockConfig(symbols=["MSFT", "NVDA", "TSLA"], analysis_period_days=60)


@pytest.fixture
def state(config, fake_store, fake_orchestrator) -> AppState:
    return AppState(config, fake_store, fake_orchestrator)


class TestStartup:
    def test_startup_is_overview_with_all_pending(self, state, fake_orchestrator):
        assert isinstance(state.mode, Overview)
        assert state.mode.time_range is TimeRange.ONE_MONTH
        assert state.symbols == ["MSFT", "NVDA", "TSLA"]
        assert all(isinstance(s, Pending) for s in state.fetch_states.values())
        assert fake_orchestrator.calls == [(["MSFT", "NVDA", "TSLA"], 60)]

    def test_session_overrides(self, config, fake_store, fake_orchestrator):
        state = AppState(config, fake_store, fake_orchestrator, symbols=["AAPL"], period_days=7)

        assert state.symbols == ["AAPL"]
        assert state.period_days == 7
        assert fake_orchestrator.calls == [(["AAPL"], 7)]
        assert state.config.symbols == ["MSFT", "NVDA", "TSLA"]

    def test_warning_cleared_by_next_key(self, config, fake_store, fake_orchestrator):
        state = AppState(config, fake_store, fake_orchestrator, warning="corrupt config")

        assert state.snapshot().warning == "corrupt config"
        press(state, RIGHT)
        assert state.snapshot().warning is None


class TestOverview:
    def test_selection_is_clamped(self, state):
        press(state, LEFT)
        assert state.selected == 0

        press(state, RIGHT, RIGHT, RIGHT, RIGHT)
        assert state.selected == 2

        press(state, LEFT)
        assert state.selected == 1

    def test_range_cycles(self, state):
        press(state, DOWN)
        assert state.mode.time_range is TimeRange.SIX_MONTHS
        press(state, DOWN)
        assert state.mode.time_range is TimeRange.ONE_DAY
        press(state, UP)
        assert state.mode.time_range is TimeRange.SIX_MONTHS

    def test_enter_opens_detail_for_selected(self, state):
        press(state, RIGHT, DOWN, ENTER)

        assert state.mode == Detail(symbol="NVDA", time_range=TimeRange.SIX_MONTHS)

    def test_manual_refresh_resets_to_pending(self, state, fake_orchestrator):
        state.handle(FetchResult(symbol="MSFT", generation=1, state=ready("MSFT")))

        type_text(state, "r")

        assert isinstance(state.fetch_states["MSFT"], Pending)
        assert len(fake_orchestrator.calls) == 2

    @pytest.mark.parametrize("event", [KeyEvent.of("q"), ESCAPE, QUIT])
    def test_quit(self, state, event):
        press(state, event)

        assert state.running is False


class TestDetail:
    def test_escape_returns_to_overview_preserving_selection(self, state):
        press(state, RIGHT, RIGHT, ENTER, ESCAPE)

        assert isinstance(state.mode, Overview)
        assert state.selected == 2

    def test_range_changes_in_detail(self, state):
        press(state, ENTER, UP)

        assert state.mode == Detail(symbol="MSFT", time_range=TimeRange.FIVE_DAYS)
        press(state, ESCAPE)
        assert state.mode.time_range is TimeRange.FIVE_DAYS

    def test_quit_from_detail(self, state):
        press(state, ENTER, KeyEvent.of("q"))

        assert state.running is False

    def test_ctrl_c_quits_from_detail(self, state):
        press(state, ENTER, QUIT)

        assert state.running is False


class TestEditing:
    def test_enter_edit_mode(self, state):
        type_text(state, "e")

        assert isinstance(state.mode, Editing)
        session = state.mode.session
        assert session.symbols == ["MSFT", "NVDA", "TSLA"]
        assert session.cursor == 2
        assert session.dirty is False

    def test_letters_are_input_not_commands(self, state):
        type_text(state, "e")
        type_text(state, "qre")

        assert state.running is True
        assert state.mode.session.input_buffer == "qre"

    def test_add_and_save(self, state, fake_store, fake_orchestrator):
        """Overview → e → add "aapl" → Ctrl-S commits AAPL once and refreshes."""
        type_text(state, "e")
        type_text(state, "aapl")
        press(state, ENTER, SAVE)

        assert isinstance(state.mode, Overview)
        assert state.symbols == ["MSFT", "NVDA", "TSLA", "AAPL"]
        assert state.symbols.count("AAPL") == 1
        assert fake_store.saved == [
            StockConfig(symbols=["MSFT", "NVDA", "TSLA", "AAPL"], analysis_period_days=60)
        ]
        assert state.config == fake_store.saved[-1]
        assert set(state.fetch_states) == set(state.symbols)
        assert all(isinstance(s, Pending) for s in state.fetch_states.values())
        assert fake_orchestrator.calls[-1] == (["MSFT", "NVDA", "TSLA", "AAPL"], 60)

    def test_duplicate_add_keeps_size(self, state):
        type_text(state, "e")
        type_text(state, "nvda")
        press(state, ENTER)

        assert len(state.mode.session.symbols) == 3

    def test_escape_discards_dirty_session(self, state, fake_store, config):
        press(state, DOWN)
        type_text(state, "e")
        type_text(state, "aapl")
        press(state, ENTER, DELETE)
        assert state.mode.session.dirty is True

        press(state, ESCAPE)

        assert state.mode == Overview(time_range=TimeRange.SIX_MONTHS)
        assert state.symbols == ["MSFT", "NVDA", "TSLA"]
        assert state.config == config
        assert fake_store.saved == []

    def test_removing_last_symbol_then_save_is_rejected(self, state, fake_store):
        type_text(state, "e")
        press(state, DELETE, DELETE, DELETE)
        assert state.mode.session.symbols == []

        press(state, SAVE)

        assert isinstance(state.mode, Editing)
        assert state.mode.session.error
        assert fake_store.saved == []
        assert state.symbols == ["MSFT", "NVDA", "TSLA"]

    def test_save_failure_keeps_session(self, config, fake_orchestrator):
        store = FakeStore(error=PersistenceError("disk full"))
        state = AppState(config, store, fake_orchestrator)
        type_text(state, "e")
        type_text(state, "amd")
        press(state, ENTER, SAVE)

        assert isinstance(state.mode, Editing)
        assert state.mode.session.error == "disk full"
        assert state.mode.session.symbols[-1] == "AMD"
        assert state.symbols == ["MSFT", "NVDA", "TSLA"]
        assert len(fake_orchestrator.calls) == 1

    def test_save_removes_fetch_state_of_removed_symbol(self, state):
        state.handle(FetchResult(symbol="TSLA", generation=3, state=ready("TSLA")))
        type_text(state, "e")
        press(state, DELETE, SAVE)

        assert "TSLA" not in state.fetch_states
        assert state.selected <= len(state.symbols) - 1

    def test_save_keeps_persisted_period_under_override(self, config, fake_store, fake_orchestrator):
        state = AppState(config, fake_store, fake_orchestrator, symbols=["AAPL"], period_days=7)
        type_text(state, "e")
        press(state, SAVE)

        assert fake_store.saved == [StockConfig(symbols=["AAPL"], analysis_period_days=60)]
        assert fake_orchestrator.calls[-1] == (["AAPL"], 7)

    def test_cursor_and_backspace(self, state):
        type_text(state, "e")
        press(state, UP)
        type_text(state, "ab")
        press(state, KeyEvent(key=Key.BACKSPACE))

        session = state.mode.session
        assert session.cursor == 1
        assert session.input_buffer == "a"

    def test_snapshot_edit_is_a_copy(self, state):
        type_text(state, "e")
        snapshot = state.snapshot()
        type_text(state, "x")

        assert snapshot.edit.input_buffer == ""
        assert snapshot.mode == "editing"


class TestFetchResults:
    def test_result_applied_without_changing_mode(self, state, fake_orchestrator):
        press(state, ENTER)
        generation = fake_orchestrator.issued["MSFT"]

        assert state.apply_fetch_result(
            FetchResult(symbol="MSFT", generation=generation, state=ready("MSFT"))
        )

        assert isinstance(state.fetch_states["MSFT"], Ready)
        assert isinstance(state.mode, Detail)

    def test_failed_result_applied(self, state, fake_orchestrator):
        failed = Failed(reason=FailureReason.UNKNOWN_SYMBOL, message="no data")
        state.handle(FetchResult(symbol="NVDA", generation=fake_orchestrator.issued["NVDA"], state=failed))

        assert state.fetch_states["NVDA"] == failed

    def test_superseded_result_ignored(self, state, fake_orchestrator):
        """Two MSFT refreshes: only the second request's result is kept."""
        first = fake_orchestrator.issued["MSFT"]
        type_text(state, "r")
        second = fake_orchestrator.issued["MSFT"]

        state.handle(FetchResult(symbol="MSFT", generation=second, state=ready("MSFT", 20.0)))
        state.handle(FetchResult(symbol="MSFT", generation=first, state=ready("MSFT", 99.0)))

        final = state.fetch_states["MSFT"]
        assert isinstance(final, Ready)
        assert final.result.current_price == 20.0

    def test_result_for_untracked_symbol_ignored(self, state):
        assert not state.apply_fetch_result(
            FetchResult(symbol="AMZN", generation=1, state=ready("AMZN"))
        )
        assert "AMZN" not in state.fetch_states

    def test_result_during_editing_updates_committed_state(self, state, fake_orchestrator):
        type_text(state, "e")
        state.handle(
            FetchResult(symbol="TSLA", generation=fake_orchestrator.issued["TSLA"], state=ready("TSLA"))
        )

        assert isinstance(state.mode, Editing)
        assert isinstance(state.fetch_states["TSLA"], Ready)


class TestSnapshot:
    def test_snapshot_contents(self, state):
        press(state, RIGHT, ENTER)

        snapshot = state.snapshot()

        assert snapshot.mode == "detail"
        assert snapshot.detail_symbol == "NVDA"
        assert snapshot.selected_symbol == "NVDA"
        assert snapshot.symbols == ("MSFT", "NVDA", "TSLA")
        assert snapshot.period_days == 60
        assert snapshot.edit is None

    def test_snapshot_is_detached(self, state, fake_orchestrator):
        snapshot = state.snapshot()
        state.handle(
            FetchResult(symbol="MSFT", generation=fake_orchestrator.issued["MSFT"], state=ready("MSFT"))
        )

        assert isinstance(snapshot.fetch_states["MSFT"], Pending)
