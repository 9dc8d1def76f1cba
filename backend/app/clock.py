from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Clock(Protocol):
    def now_ms(self) -> float:
        ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class SystemClock:
    """Monotonic wall clock in milliseconds; never goes backwards."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0


class AsyncioScheduler:
    """One-shot timers on the running event loop.

    Must be used from code already running inside the loop (request handlers,
    websocket handlers or other timer callbacks).
    """

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay_ms) / 1000.0, callback)
