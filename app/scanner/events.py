"""
==============================================================================
Key Event Hub Module
==============================================================================

Explicit subscribe/unsubscribe fan-out for raw key events.

A transport (WebSocket session, REST call, local keyboard hook) publishes
KeyEvents to the hub; classifiers subscribe and get a Subscription handle
they cancel on teardown.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Callable, List

from app.scanner.models import KeyEvent


# Module logger
logger = logging.getLogger(__name__)

KeyListener = Callable[[KeyEvent], None]


class Subscription:
    """Handle for one hub listener. `cancel()` is idempotent."""

    def __init__(self, hub: "KeyEventHub", listener: KeyListener) -> None:
        self._hub = hub
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._hub._remove(self._listener)


class KeyEventHub:
    """
    Synchronous fan-out of key events to subscribed listeners.

    Listeners run in subscription order on the publishing thread.
    """

    def __init__(self) -> None:
        self._listeners: List[KeyListener] = []

    def subscribe(self, listener: KeyListener) -> Subscription:
        self._listeners.append(listener)
        logger.debug(f"Key listener subscribed ({len(self._listeners)} active)")
        return Subscription(self, listener)

    def publish(self, event: KeyEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _remove(self, listener: KeyListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return
        logger.debug(f"Key listener unsubscribed ({len(self._listeners)} active)")
