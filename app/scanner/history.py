"""
==============================================================================
Scan History Module
==============================================================================

Bounded, newest-first record of recent scans for one station.

==============================================================================
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, List, Optional

from app.scanner.models import ScanEvent


DEFAULT_HISTORY_SIZE = 10


class ScanHistory:
    """
    Ring buffer of the most recent scans, newest first.

    When full, adding a scan evicts the oldest one.

    Example:
        >>> history = ScanHistory(capacity=2)
        >>> for event in (first, second, third):
        ...     history.add(event)
        >>> [e.code for e in history]
        ['third', 'second']
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_SIZE) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self._events: Deque[ScanEvent] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._events.maxlen

    def add(self, event: ScanEvent) -> None:
        self._events.appendleft(event)

    @property
    def latest(self) -> Optional[ScanEvent]:
        return self._events[0] if self._events else None

    def clear(self) -> None:
        self._events.clear()

    def to_list(self) -> List[ScanEvent]:
        return list(self._events)

    def __iter__(self) -> Iterator[ScanEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)
