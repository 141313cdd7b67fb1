"""Curses renderer and key decoding.

The renderer only reads `Snapshot` objects; it never touches AppState.
"""

import curses
from collections.abc import Sequence

from tickerwatch.analysis import filter_by_range, price_range, volatility
from tickerwatch.models import AnalysisResult, Failed, Key, KeyEvent, Pending, Ready
from tickerwatch.state import Snapshot

_SPARK_CHARS = "▁▂▃▄▅▆▇█"
_KEY_MAP = {
    curses.KEY_LEFT: Key.LEFT,
    curses.KEY_RIGHT: Key.RIGHT,
    curses.KEY_UP: Key.UP,
    curses.KEY_DOWN: Key.DOWN,
    curses.KEY_ENTER: Key.ENTER,
    10: Key.ENTER,
    13: Key.ENTER,
    27: Key.ESCAPE,
    curses.KEY_BACKSPACE: Key.BACKSPACE,
    127: Key.BACKSPACE,
    8: Key.BACKSPACE,
    curses.KEY_DC: Key.DELETE,
    19: Key.SAVE,  # Ctrl-S
    3: Key.QUIT,  # Ctrl-C
    17: Key.QUIT,  # Ctrl-Q
}

_HINTS = {
    "overview": "←/→ select  ↑/↓ range  Enter detail  e edit  r refresh  q quit",
    "detail": "↑/↓ range  r refresh  Esc back  q quit",
    "editing": "type + Enter add  ↑/↓ move  Del remove  Ctrl-S save  Esc cancel",
}


def decode_key(code: int) -> KeyEvent | None:
    """Translate a curses key code into a KeyEvent, or None for no/unknown key."""
    if code in _KEY_MAP:
        return KeyEvent(key=_KEY_MAP[code])
    if 32 <= code <= 126:
        return KeyEvent.of(chr(code))
    return None


def format_number(num: float | int | None) -> str:
    """Format large numbers with K, M, B suffixes"""
    if num is None:
        return "n/a"
    if num >= 1_000_000_000:
        return f"{num / 1_000_000_000:.1f}B"
    elif num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    elif num >= 1_000:
        return f"{num / 1_000:.0f}K"
    else:
        return str(int(num))


def format_price(value: float | None) -> str:
    return "n/a" if value is None else f"${value:,.2f}"


def format_percent(value: float | None) -> str:
    return "n/a" if value is None else f"{value:+.2f}%"


def status_text(state: Pending | Ready | Failed) -> str:
    if isinstance(state, Ready):
        return "ok"
    if isinstance(state, Failed):
        return state.reason.label
    return "loading…"


def sparkline(values: Sequence[float], width: int) -> str:
    """One-line chart of `values`, resampled to at most `width` characters."""
    values = _resample(values, width)
    if not values:
        return ""
    low, high = min(values), max(values)
    if high == low:
        return _SPARK_CHARS[len(_SPARK_CHARS) // 2] * len(values)
    scale = (len(_SPARK_CHARS) - 1) / (high - low)
    return "".join(_SPARK_CHARS[round((v - low) * scale)] for v in values)


def render_chart(values: Sequence[float], width: int, height: int) -> list[str]:
    """
    Multi-line bar chart, top row first.

    Each column is one (resampled) value; the column is filled from the bottom
    in proportion to where the value sits between the min and max.
    """
    values = _resample(values, width)
    if not values or height <= 0:
        return []
    low, high = min(values), max(values)
    span = high - low
    levels = [
        height if span == 0 else max(1, round((v - low) / span * height))
        for v in values
    ]
    return [
        "".join("█" if level >= row else " " for level in levels)
        for row in range(height, 0, -1)
    ]


def _resample(values: Sequence[float], width: int) -> list[float]:
    if width <= 0:
        return []
    if len(values) <= width:
        return list(values)
    step = (len(values) - 1) / (width - 1) if width > 1 else 0
    return [values[round(i * step)] for i in range(width)]


def overview_rows(snapshot: Snapshot, chart_width: int = 20) -> list[list[str]]:
    """Table rows for the overview screen, one per tracked symbol."""
    rows = []
    for symbol in snapshot.symbols:
        state = snapshot.fetch_states.get(symbol, Pending())
        if isinstance(state, Ready):
            result = state.result
            closes = [p.price for p in filter_by_range(result.series, snapshot.time_range)]
            rows.append(
                [
                    symbol,
                    format_price(result.current_price),
                    format_percent(result.trend_percent),
                    format_price(result.sma_10),
                    format_price(result.sma_50),
                    format_price(result.ema_20),
                    format_price(result.predictions[-1] if result.predictions else None),
                    sparkline(closes, chart_width),
                ]
            )
        else:
            rows.append([symbol, "", "", "", "", "", "", status_text(state)])
    return rows


def detail_metrics(result: AnalysisResult) -> list[str]:
    """Metric lines for the detail screen's side panel."""
    closes = result.closes
    high, low = price_range(closes)
    volumes = [p.volume for p in result.series if p.volume is not None]
    avg_volume = sum(volumes) / len(volumes) if volumes else None
    lines = [
        f"Price:  {format_price(result.current_price)}",
        f"Trend:  {format_percent(result.trend_percent)}",
        f"SMA10:  {format_price(result.sma_10)}",
        f"SMA50:  {format_price(result.sma_50)}",
        f"EMA20:  {format_price(result.ema_20)}",
        "",
        f"Hi:     {format_price(high)}",
        f"Lo:     {format_price(low)}",
        f"Hi%:    {format_percent((result.current_price - high) / high * 100)}",
        f"Lo%:    {format_percent((result.current_price - low) / low * 100)}",
        f"Vol%:   {volatility(closes):.2f}%",
        f"AvgVol: {format_number(avg_volume)}",
        "",
        "Forecast:",
    ]
    lines.extend(f"  +{i}: {format_price(p)}" for i, p in enumerate(result.predictions, 1))
    return lines


def _init_colors() -> dict[str, int]:
    if not curses.has_colors():
        return {}
    curses.start_color()
    try:
        curses.use_default_colors()
    except curses.error:
        pass

    curses.init_pair(1, curses.COLOR_GREEN, -1)  # up
    curses.init_pair(2, curses.COLOR_RED, -1)  # down / errors
    curses.init_pair(3, curses.COLOR_YELLOW, -1)  # accent / forecast
    curses.init_pair(4, curses.COLOR_CYAN, -1)  # axis labels
    return {"UP": 1, "DOWN": 2, "ACCENT": 3, "AXIS": 4}


def _truncate(s: str, width: int) -> str:
    if width <= 0:
        return ""
    return s if len(s) <= width else s[: max(0, width - 1)] + "…"


def _safe_addstr(win, y: int, x: int, s: str, attr: int = 0) -> None:
    try:
        win.addstr(y, x, s, attr)
    except curses.error:
        # Writing into the last cell or past a small terminal's edge
        pass


class Renderer:
    """Draws one frame per tick from a Snapshot."""

    def __init__(self, stdscr) -> None:
        self.stdscr = stdscr
        self.colors = _init_colors()

    def _attr(self, name: str, extra: int = 0) -> int:
        pair = self.colors.get(name)
        return (curses.color_pair(pair) if pair else 0) | extra

    def draw(self, snapshot: Snapshot, market_status: str | None = None) -> None:
        self.stdscr.erase()
        height, width = self.stdscr.getmaxyx()

        self._draw_header(snapshot, market_status, width)
        if snapshot.mode == "editing":
            self._draw_editing(snapshot, height, width)
        elif snapshot.mode == "detail":
            self._draw_detail(snapshot, height, width)
        else:
            self._draw_overview(snapshot, height, width)

        if snapshot.warning:
            _safe_addstr(
                self.stdscr,
                height - 2,
                0,
                _truncate(f"⚠ {snapshot.warning}", width - 1),
                self._attr("ACCENT", curses.A_BOLD),
            )
        _safe_addstr(self.stdscr, height - 1, 0, _truncate(_HINTS[snapshot.mode], width - 1), curses.A_DIM)
        self.stdscr.refresh()

    def _draw_header(self, snapshot: Snapshot, market_status: str | None, width: int) -> None:
        ready = sum(isinstance(s, Ready) for s in snapshot.fetch_states.values())
        parts = [
            "tickerwatch",
            f"range {snapshot.time_range.value}",
            f"period {snapshot.period_days}d",
            f"loaded {ready}/{len(snapshot.symbols)}",
        ]
        if market_status:
            parts.append(f"market {market_status}")
        _safe_addstr(self.stdscr, 0, 0, _truncate("  ".join(parts), width - 1), self._attr("ACCENT", curses.A_BOLD))

    def _draw_overview(self, snapshot: Snapshot, height: int, width: int) -> None:
        headers = ["SYMBOL", "PRICE", "TREND", "SMA10", "SMA50", "EMA20", "FORECAST", snapshot.time_range.value]
        chart_width = max(8, min(30, width - 80))
        rows = overview_rows(snapshot, chart_width)
        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], len(cell))

        def fmt_row(cells: list[str]) -> str:
            return "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(cells))

        _safe_addstr(self.stdscr, 2, 1, _truncate(fmt_row(headers), width - 2), curses.A_BOLD)
        for i, row in enumerate(rows):
            y = 3 + i
            if y >= height - 2:
                break
            attr = curses.A_REVERSE if i == snapshot.selected else 0
            state = snapshot.fetch_states.get(row[0])
            if isinstance(state, Ready):
                attr |= self._attr("UP" if state.result.trend_percent >= 0 else "DOWN")
            elif isinstance(state, Failed):
                attr |= self._attr("DOWN")
            _safe_addstr(self.stdscr, y, 1, _truncate(fmt_row(row), width - 2), attr)

    def _draw_detail(self, snapshot: Snapshot, height: int, width: int) -> None:
        symbol = snapshot.detail_symbol or ""
        _safe_addstr(self.stdscr, 1, max(0, width - len(symbol) - 1), symbol, self._attr("ACCENT", curses.A_BOLD))

        state = snapshot.fetch_states.get(symbol)
        if not isinstance(state, Ready):
            message = "Loading…" if not isinstance(state, Failed) else f"{state.reason.label}: {state.message}"
            _safe_addstr(self.stdscr, 3, 2, _truncate(message, width - 4))
            return

        result = state.result
        panel_width = 28
        chart_left = 10
        chart_width = max(10, width - panel_width - chart_left - 2)
        chart_height = max(4, height - 6)

        history = [p.price for p in filter_by_range(result.series, snapshot.time_range)]
        forecast = list(result.predictions)
        values = history + forecast
        lines = render_chart(values, chart_width, chart_height)
        if lines:
            high, low = max(values), min(values)
            _safe_addstr(self.stdscr, 2, 0, f"{high:>9.2f}", self._attr("AXIS"))
            _safe_addstr(self.stdscr, 2 + chart_height - 1, 0, f"{low:>9.2f}", self._attr("AXIS"))
            split = len(lines[0]) * len(history) // len(values)
            for row, line in enumerate(lines):
                y = 2 + row
                _safe_addstr(self.stdscr, y, chart_left, line[:split], self._attr("UP"))
                _safe_addstr(self.stdscr, y, chart_left + split, line[split:], self._attr("ACCENT"))

        panel_x = width - panel_width
        for i, line in enumerate(detail_metrics(result)):
            if 2 + i >= height - 2:
                break
            _safe_addstr(self.stdscr, 2 + i, panel_x, _truncate(line, panel_width - 1))

    def _draw_editing(self, snapshot: Snapshot, height: int, width: int) -> None:
        session = snapshot.edit
        if session is None:
            return
        title = "Edit symbols" + (" (modified)" if session.dirty else "")
        _safe_addstr(self.stdscr, 2, 2, title, curses.A_BOLD)
        _safe_addstr(self.stdscr, 3, 2, _truncate(f"Add symbol: {session.input_buffer}_", width - 4))
        if session.error:
            _safe_addstr(self.stdscr, 4, 2, _truncate(session.error, width - 4), self._attr("DOWN", curses.A_BOLD))

        for i, symbol in enumerate(session.symbols):
            y = 6 + i
            if y >= height - 2:
                break
            if i == session.cursor:
                _safe_addstr(self.stdscr, y, 2, f"> {symbol}", self._attr("ACCENT", curses.A_REVERSE))
            else:
                _safe_addstr(self.stdscr, y, 2, f"  {symbol}")
        if not session.symbols:
            _safe_addstr(self.stdscr, 6, 2, "(no symbols)", curses.A_DIM)
