"""Concurrent fetch-and-analyze tasks feeding the event loop."""

import queue
import threading
import time
from collections.abc import Callable, Iterable, Sequence

import sentry_sdk

from tickerwatch.analysis import analyze
from tickerwatch.exceptions import FetchError, InsufficientDataError
from tickerwatch.logging import logger
from tickerwatch.models import (
    FailureReason,
    Failed,
    FetchResult,
    FetchState,
    PricePoint,
    Ready,
)

FetchHistory = Callable[[str, int], Sequence[PricePoint]]


class FetchOrchestrator:
    """
    🚚 Runs one fetch task per symbol and hands results back to the event loop.

    Worker threads only ever put results on a queue; `refresh` and `poll` must be
    called from the event loop thread. Every request gets a generation number
    from a single increasing counter, and only the newest request per symbol
    can deliver a result. Older results are dropped when they arrive.

    Workers are daemon threads: a fetch that never returns is reported as a
    timeout, its worker is replaced, and it cannot keep the process alive.
    """

    def __init__(
        self,
        fetch_history: FetchHistory,
        horizon: int = 5,
        timeout: float = 15.0,
        max_workers: int = 8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.horizon = horizon
        self.timeout = timeout
        self._fetch_history = fetch_history
        self._clock = clock
        self._jobs: queue.Queue[tuple[str, int, int] | None] = queue.Queue()
        self._results: queue.Queue[FetchResult] = queue.Queue()
        self._generation = 0
        self._lock = threading.Lock()
        # symbol -> generation of the newest request
        self._outstanding: dict[str, int] = {}
        # generation -> (start time, worker) once a worker picked it up
        self._started: dict[int, tuple[float, threading.Thread]] = {}
        self._retired: set[threading.Thread] = set()
        self._workers: list[threading.Thread] = []
        self._spawned = 0
        self._closed = False
        for _ in range(max_workers):
            self._spawn_worker()

    def _spawn_worker(self) -> None:
        self._spawned += 1
        worker = threading.Thread(
            target=self._worker_loop, name=f"fetch-{self._spawned}", daemon=True
        )
        self._workers = [w for w in self._workers if w.is_alive()]
        self._workers.append(worker)
        worker.start()

    def _retire(self, worker: threading.Thread) -> None:
        """Let `worker` exit after its current fetch and start a replacement."""
        self._retired.add(worker)
        if not self._closed:
            self._spawn_worker()

    def refresh(self, symbols: Iterable[str], period_days: int) -> dict[str, int]:
        """
        Queue a fetch for each symbol, superseding any request still in flight.

        Args:
            symbols: Normalized ticker symbols
            period_days: Days of history to request

        Returns:
            Generation number issued for each symbol
        """
        issued: dict[str, int] = {}
        for symbol in symbols:
            self._generation += 1
            generation = self._generation

            with self._lock:
                previous = self._outstanding.get(symbol)
                if previous is not None:
                    # A queued request is skipped by the worker. A running one
                    # gives up its worker slot and its result is dropped.
                    started = self._started.pop(previous, None)
                    if started is not None:
                        self._retire(started[1])
                    logger.debug(
                        "Superseding fetch symbol={symbol} old={old} new={new}",
                        symbol=symbol,
                        old=previous,
                        new=generation,
                    )
                self._outstanding[symbol] = generation

            self._jobs.put((symbol, generation, period_days))
            issued[symbol] = generation

        if issued:
            logger.info(
                "Refresh requested symbols={symbols} period={period}",
                symbols=list(issued),
                period=period_days,
            )
            sentry_sdk.add_breadcrumb(
                category="fetch",
                message=f"Refresh requested for {len(issued)} symbol(s)",
                level="info",
                data={"symbols": list(issued), "period_days": period_days},
            )
        return issued

    def fetch_and_analyze(self, symbol: str, period_days: int) -> FetchState:
        """Fetch one symbol and run the analysis, folding errors into Failed."""
        try:
            series = self._fetch_history(symbol, period_days)
            result = analyze(symbol, series, self.horizon)
        except FetchError as e:
            logger.warning(
                "Fetch failed symbol={symbol} reason={reason} error={error}",
                symbol=symbol,
                reason=e.reason.value,
                error=e.message,
            )
            sentry_sdk.add_breadcrumb(
                category="fetch",
                message=f"Fetch failed for {symbol}",
                level="warning",
                data={"reason": e.reason.value, "error": e.message},
            )
            return Failed(reason=e.reason, message=e.message)
        except InsufficientDataError as e:
            logger.warning("Analysis failed symbol={symbol} error={error}", symbol=symbol, error=e.message)
            return Failed(reason=FailureReason.INSUFFICIENT_DATA, message=e.message)
        except Exception as e:
            logger.exception("Unexpected fetch error symbol={symbol}", symbol=symbol)
            sentry_sdk.capture_exception(e)
            return Failed(
                reason=FailureReason.NETWORK_ERROR, message=f"{type(e).__name__}: {e}"
            )
        return Ready(result=result)

    def _worker_loop(self) -> None:
        worker = threading.current_thread()
        while True:
            job = self._jobs.get()
            if job is None:
                return
            symbol, generation, period_days = job

            with self._lock:
                if self._outstanding.get(symbol) != generation:
                    continue
                self._started[generation] = (self._clock(), worker)

            state = self.fetch_and_analyze(symbol, period_days)
            self._results.put(FetchResult(symbol=symbol, generation=generation, state=state))

            with self._lock:
                self._started.pop(generation, None)
                if worker in self._retired:
                    # Superseded or timed out, and already replaced
                    self._retired.discard(worker)
                    return

    def poll(self) -> list[FetchResult]:
        """
        Collect finished results without blocking.

        Returns:
            Results of current requests in completion order, followed by
            Failed(timeout) for requests running longer than the timeout.
            Requests still waiting for a free worker never time out.
        """
        delivered: list[FetchResult] = []
        while True:
            try:
                result = self._results.get_nowait()
            except queue.Empty:
                break

            with self._lock:
                if self._outstanding.get(result.symbol) != result.generation:
                    logger.debug(
                        "Dropping stale result symbol={symbol} generation={generation}",
                        symbol=result.symbol,
                        generation=result.generation,
                    )
                    continue
                del self._outstanding[result.symbol]
                self._started.pop(result.generation, None)
            delivered.append(result)

        now = self._clock()
        with self._lock:
            for symbol, generation in list(self._outstanding.items()):
                started = self._started.get(generation)
                if started is None or now - started[0] < self.timeout:
                    continue
                del self._outstanding[symbol]
                del self._started[generation]
                self._retire(started[1])
                logger.warning("Fetch timed out symbol={symbol}", symbol=symbol)
                delivered.append(
                    FetchResult(
                        symbol=symbol,
                        generation=generation,
                        state=Failed(
                            reason=FailureReason.TIMEOUT,
                            message=f"No response after {self.timeout:g}s",
                        ),
                    )
                )
        return delivered

    @property
    def in_flight(self) -> int:
        return len(self._outstanding)

    def shutdown(self) -> None:
        """Stop the workers; running network calls are not waited for."""
        with self._lock:
            self._closed = True
            self._outstanding.clear()
        for _ in self._workers:
            self._jobs.put(None)
