"""Clocks and recurring tickers."""

from media_orchestrator.scheduling.clock import Clock, ManualClock, SystemClock
from media_orchestrator.scheduling.ticker import (
    ManualScheduler,
    Scheduler,
    ThreadScheduler,
    Ticker,
)

__all__ = [
    "Clock",
    "ManualClock",
    "ManualScheduler",
    "Scheduler",
    "SystemClock",
    "ThreadScheduler",
    "Ticker",
]
