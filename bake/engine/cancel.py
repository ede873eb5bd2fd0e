"""Build-wide cancellation signal."""

from __future__ import annotations

import threading
from typing import Callable


class CancelSignal:
    """A flag that is set once per build and never cleared.

    Waiters register a callback with :meth:`subscribe` so that a sleeping
    poller wakes up as soon as the build is cancelled instead of at its
    next scheduled poll.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._listeners: list[Callable[[], None]] = []

    def set(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            listeners = list(self._listeners)
        for listener in listeners:
            listener()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call *listener* when the signal is set.

        If the signal is already set the listener runs immediately.

        Returns:
            A function that removes the listener again.
        """
        with self._lock:
            fire_now = self._event.is_set()
            if not fire_now:
                self._listeners.append(listener)
        if fire_now:
            listener()

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
