"""
==============================================================================
Scanner Timers Module
==============================================================================

Cancellable timer abstraction injected into the scan classifier.

Classes:
--------
- TimerHandle: Cancellable handle for one pending callback
- Scheduler: Protocol the classifier depends on (clock + call_later)
- AsyncioScheduler: Event-loop backed scheduler used by the service
- ManualScheduler: Virtual clock for deterministic tests and replays

All times are in milliseconds.

==============================================================================
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from typing import Callable, List, Optional, Protocol, Tuple


# Module logger
logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """Handle returned by `Scheduler.call_later`."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Clock and timer source for the classifier."""

    def now_ms(self) -> float:
        ...

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """
    Scheduler backed by the running asyncio event loop.

    Timers are `loop.call_later` handles, so callbacks run on the loop thread
    between message handlers and never interleave with a keystroke.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000.0, callback)


class _ManualTimer:
    """Pending callback inside a ManualScheduler."""

    __slots__ = ("due_ms", "callback", "cancelled")

    def __init__(self, due_ms: float, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Virtual-time scheduler.

    Time only moves when `advance()` is called; due timers fire in order of
    their due time, ties in order of scheduling.

    Example:
        >>> scheduler = ManualScheduler()
        >>> fired = []
        >>> scheduler.call_later(100, lambda: fired.append("tick"))
        >>> scheduler.advance(99); fired
        []
        >>> scheduler.advance(1); fired
        ['tick']
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = start_ms
        self._queue: List[Tuple[float, int, _ManualTimer]] = []
        self._counter = itertools.count()

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self._now + max(delay_ms, 0.0), callback)
        heapq.heappush(self._queue, (timer.due_ms, next(self._counter), timer))
        return timer

    def advance(self, delta_ms: float) -> None:
        """Move the clock forward, firing every timer that becomes due."""
        target = self._now + delta_ms
        while self._queue and self._queue[0][0] <= target:
            due_ms, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due_ms
            timer.callback()
        self._now = target

    @property
    def pending(self) -> int:
        """Number of timers still due to fire."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)
