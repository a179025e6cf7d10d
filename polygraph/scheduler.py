"""Cooperative timers used by the session engine.

The session engine never sleeps or spawns threads.  Everything that
happens "later" (the analysis countdown, the status ticker, the audio
sampling tick) is registered on a :class:`Scheduler`.  The GUI provides
a ``QTimer`` based implementation, while :class:`ManualScheduler` is
advanced explicitly and gives tests and headless runs a deterministic
clock.
"""

from __future__ import annotations

import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable, Optional


class TimerHandle(ABC):
    """Handle to a pending one-shot or periodic timer."""

    @property
    @abstractmethod
    def active(self) -> bool:
        """``True`` while the timer may still fire."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the timer.  Calling this more than once is harmless."""


class Scheduler(ABC):
    """Host scheduling primitive for one-shot and periodic callbacks."""

    @abstractmethod
    def now(self) -> float:
        """Return the current time in milliseconds."""

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay_ms`` milliseconds."""

    @abstractmethod
    def call_every(
        self, interval_ms: float, callback: Callable[[], None]
    ) -> TimerHandle:
        """Run ``callback`` every ``interval_ms`` milliseconds until cancelled."""


class _ManualTimer(TimerHandle):
    def __init__(
        self,
        due: float,
        callback: Callable[[], None],
        interval: Optional[float],
    ) -> None:
        self.due = due
        self.callback = callback
        self.interval = interval
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        self._active = False


class ManualScheduler(Scheduler):
    """Deterministic scheduler driven by :meth:`advance`.

    Timers fire in due-time order; timers due at the same instant fire in
    the order they were registered.  A periodic timer is rescheduled
    relative to its previous due time, so advancing by ``n * interval``
    fires it exactly ``n`` times.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._queue: list[tuple[float, int, _ManualTimer]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def _push(self, timer: _ManualTimer) -> None:
        heapq.heappush(self._queue, (timer.due, next(self._seq), timer))

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self._now + max(float(delay_ms), 0.0), callback, None)
        self._push(timer)
        return timer

    def call_every(
        self, interval_ms: float, callback: Callable[[], None]
    ) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        timer = _ManualTimer(self._now + float(interval_ms), callback, float(interval_ms))
        self._push(timer)
        return timer

    @property
    def pending(self) -> int:
        """Number of timers that may still fire."""
        return sum(1 for _, _, timer in self._queue if timer.active)

    def advance(self, ms: float) -> None:
        """Move the clock forward by ``ms`` and fire every timer that falls due."""
        target = self._now + float(ms)
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if not timer.active:
                continue
            self._now = due
            if timer.interval is None:
                timer.cancel()
            else:
                timer.due = due + timer.interval
                self._push(timer)
            timer.callback()
        self._now = target


__all__ = ["TimerHandle", "Scheduler", "ManualScheduler"]
