"""Recurring tickers behind one small scheduler interface.

``ThreadScheduler`` runs each ticker on a daemon thread and is what the service
uses at runtime. ``ManualScheduler`` fires due tickers only when ``advance`` is
called, so polling and cleanup can be driven step by step.

In both implementations ``Ticker.cancel()`` is synchronous: once it returns the
callback will not start again. Cancelling from inside the ticker's own callback
is allowed.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

from media_orchestrator.scheduling.clock import Clock, ManualClock, SystemClock

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class Ticker(Protocol):
    name: str
    interval_s: float

    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    clock: Clock

    def every(self, interval_s: float, callback: TickCallback, *, name: str) -> Ticker: ...

    def active_tickers(self) -> list[str]: ...

    def shutdown(self) -> None: ...


def _run_callback(name: str, callback: TickCallback) -> None:
    try:
        callback()
    except Exception:  # noqa: BLE001
        logger.exception("ticker event=callback_failed name=%s", name)


class _ThreadTicker:
    def __init__(
        self,
        *,
        name: str,
        interval_s: float,
        callback: TickCallback,
        on_exit: Callable[[_ThreadTicker], None],
    ) -> None:
        self.name = name
        self.interval_s = interval_s
        self._callback = callback
        self._on_exit = on_exit
        self._stop = threading.Event()
        # Held for the whole callback; reentrant so a callback may cancel itself.
        self._running = threading.RLock()
        self._thread = threading.Thread(target=self._run, name=f"ticker-{name}", daemon=True)

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()
        with self._running:
            pass

    def _run(self) -> None:
        try:
            while not self._stop.wait(self.interval_s):
                with self._running:
                    if self._stop.is_set():
                        break
                    _run_callback(self.name, self._callback)
        finally:
            self._on_exit(self)


class ThreadScheduler:
    """Wall-clock scheduler backed by one daemon thread per ticker."""

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or SystemClock()
        self._tickers: set[_ThreadTicker] = set()
        self._lock = threading.Lock()

    def every(self, interval_s: float, callback: TickCallback, *, name: str) -> Ticker:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        ticker = _ThreadTicker(
            name=name,
            interval_s=interval_s,
            callback=callback,
            on_exit=self._discard,
        )
        with self._lock:
            self._tickers.add(ticker)
        ticker.start()
        return ticker

    def active_tickers(self) -> list[str]:
        with self._lock:
            return sorted(t.name for t in self._tickers if not t.cancelled)

    def shutdown(self) -> None:
        with self._lock:
            tickers = list(self._tickers)
        for ticker in tickers:
            ticker.cancel()

    def _discard(self, ticker: _ThreadTicker) -> None:
        with self._lock:
            self._tickers.discard(ticker)


class _ManualTicker:
    def __init__(
        self,
        *,
        name: str,
        interval_s: float,
        callback: TickCallback,
        next_due: datetime,
        seq: int,
    ) -> None:
        self.name = name
        self.interval_s = interval_s
        self.callback = callback
        self.next_due = next_due
        self.seq = seq
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualScheduler:
    """Deterministic scheduler: time only passes through ``advance``."""

    def __init__(self, clock: ManualClock | None = None) -> None:
        self.clock = clock or ManualClock()
        self._tickers: list[_ManualTicker] = []
        self._seq = itertools.count()

    def every(self, interval_s: float, callback: TickCallback, *, name: str) -> Ticker:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        ticker = _ManualTicker(
            name=name,
            interval_s=interval_s,
            callback=callback,
            next_due=self.clock.now() + timedelta(seconds=interval_s),
            seq=next(self._seq),
        )
        self._tickers.append(ticker)
        return ticker

    def active_tickers(self) -> list[str]:
        return sorted(t.name for t in self._tickers if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every tick that falls due on the way.

        Returns the number of callbacks that ran.
        """
        target = self.clock.now() + timedelta(seconds=seconds)
        fired = 0
        while True:
            self._tickers = [t for t in self._tickers if not t.cancelled]
            due = [t for t in self._tickers if t.next_due <= target]
            if not due:
                break
            ticker = min(due, key=lambda t: (t.next_due, t.seq))
            self.clock.set(ticker.next_due)
            ticker.next_due = ticker.next_due + timedelta(seconds=ticker.interval_s)
            _run_callback(ticker.name, ticker.callback)
            fired += 1
        self.clock.set(target)
        return fired

    def shutdown(self) -> None:
        for ticker in self._tickers:
            ticker.cancel()
        self._tickers = []
