"""
Trailing-edge debouncing with a single pending slot.

Each :meth:`Debouncer.trigger` cancels the pending call (if any) and arms a
new one, so a burst of triggers inside the delay produces exactly one call,
after the last trigger. Timers come from a :class:`Scheduler`, which tests
replace with a manual clock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Something that can run a callback after a delay (seconds)."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class ThreadingScheduler:
    """Scheduler backed by daemon :class:`threading.Timer` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class Debouncer:
    """
    Single-slot, cancel-and-reschedule debouncer.

    Args:
        callback: Called once per burst, on the scheduler's thread.
        delay: Quiet period in seconds.
        scheduler: Timer source (default: :class:`ThreadingScheduler`).
        name: Label used in log messages.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        delay: float,
        scheduler: Scheduler | None = None,
        name: str = "debounce",
    ) -> None:
        self._callback = callback
        self.delay = delay
        self._scheduler = scheduler or ThreadingScheduler()
        self.name = name
        self._lock = threading.Lock()
        self._handle: Cancellable | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._handle is not None

    def trigger(self) -> None:
        """Cancel any pending call and arm a new one."""
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._handle = self._scheduler.call_later(self.delay, lambda: self._fire(generation))
        logger.debug("%s armed (%.0f ms)", self.name, self.delay * 1000)

    def cancel(self) -> bool:
        """Drop the pending call. Returns True if one was pending."""
        with self._lock:
            if self._handle is None:
                return False
            self._handle.cancel()
            self._handle = None
            self._generation += 1
        logger.debug("%s cancelled", self.name)
        return True

    def flush(self) -> bool:
        """Run the pending call now instead of waiting. Returns True if one ran."""
        if not self.cancel():
            return False
        self._callback()
        return True

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A timer that lost the race with cancel()/trigger() is stale.
            if generation != self._generation or self._handle is None:
                return
            self._handle = None
        self._callback()
