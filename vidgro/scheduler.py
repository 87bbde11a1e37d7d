import heapq
import itertools
import logging
from typing import Any, Callable, List, Tuple

from vidgro.interfaces import IScheduler, ITimerHandle

logger = logging.getLogger(__name__)


class TimerHandle(ITimerHandle):
    def __init__(self, due: float, name: str, callback: Callable[..., Any], args: Tuple[Any, ...]):
        self.due = due
        self.name = name
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self):
        return f"TimerHandle(name={self.name!r}, due={self.due}, active={self.active})"


class ManualScheduler(IScheduler):
    """
    A clock that only moves when told to. Timers fire in due order during
    advance(); ties fire in the order they were scheduled.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, TimerHandle]] = []

    @property
    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any, name: str = "") -> TimerHandle:
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        handle = TimerHandle(self._now + delay, name or getattr(callback, "__name__", "timer"), callback, args)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """
        Moves the clock forward, running every timer that falls due, including
        timers scheduled by callbacks within the same window.

        Returns:
            int: Number of callbacks that ran.
        """
        if seconds < 0:
            raise ValueError(f"cannot move the clock backwards by {seconds}")
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            handle.fired = True
            logger.debug("Timer %s fired at %.3f", handle.name, due)
            handle.callback(*handle.args)
            fired += 1
        self._now = target
        return fired

    def pending(self) -> int:
        """Returns the number of timers still waiting to fire."""
        return sum(1 for _, _, handle in self._queue if handle.active)
