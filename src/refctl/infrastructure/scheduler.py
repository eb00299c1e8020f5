"""Per-body debounce timers for rescans.

Each body has at most one pending entry. Scheduling again cancels the
pending timer and starts a fresh one, so a burst of edits yields a single
callback ``delay`` seconds after the last edit.

The timer implementation is injectable. The default uses
:class:`threading.Timer`; hosts with their own event loop supply a factory
that schedules on that loop instead.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def thread_timer(delay: float, callback: Callable[[], None]) -> Timer:
    """Default factory: a daemon :class:`threading.Timer`."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


class RescanScheduler:
    """Cancellable single-shot callbacks keyed by body id."""

    def __init__(self, timer_factory: TimerFactory | None = None) -> None:
        self._factory = timer_factory or thread_timer
        self._pending: dict[int, Timer] = {}
        self._lock = threading.Lock()

    def schedule(self, body_id: int, delay: float, callback: Callable[[], None]) -> None:
        """(Re)start the timer for *body_id*; the previous one is cancelled."""
        if delay < 0:
            msg = f"Rescan delay must be non-negative, got {delay}"
            raise ValueError(msg)

        timer: Timer | None = None

        def fire() -> None:
            with self._lock:
                if self._pending.get(body_id) is not timer:
                    return
                del self._pending[body_id]
            callback()

        timer = self._factory(delay, fire)
        with self._lock:
            previous = self._pending.pop(body_id, None)
            self._pending[body_id] = timer
        if previous is not None:
            previous.cancel()
            logger.debug("Rescan for body %d rescheduled", body_id)
        timer.start()

    def cancel(self, body_id: int) -> bool:
        """Cancel the pending timer for *body_id*. Returns whether one existed."""
        with self._lock:
            timer = self._pending.pop(body_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._pending.values())
            self._pending.clear()
        for timer in timers:
            timer.cancel()

    def pending(self, body_id: int) -> bool:
        with self._lock:
            return body_id in self._pending
