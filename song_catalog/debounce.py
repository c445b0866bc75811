"""
Cancellable timers and input debouncing.

A ``Scheduler`` runs a callback after a delay and hands back a handle that
can cancel it. ``Debouncer`` uses one to coalesce bursts of calls: every
call cancels the pending timer and starts a new one, so the wrapped function
fires once per quiet period with the most recent argument.
"""

import asyncio
import heapq
import itertools
from typing import Any, Callable, List, Optional, Protocol, Tuple


class Handle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def schedule(self, fn: Callable[[], Any], delay: float) -> Handle:
        ...

    def cancel(self, handle: Handle) -> None:
        ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop's ``call_later``."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def schedule(self, fn: Callable[[], Any], delay: float) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, fn)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class ManualHandle:
    def __init__(self, due: float, fn: Callable[[], Any]) -> None:
        self.due = due
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Fake clock. Time only moves when ``advance`` is called, which runs every
    timer that falls due, in due order.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: List[Tuple[float, int, ManualHandle]] = []
        self._seq = itertools.count()

    def schedule(self, fn: Callable[[], Any], delay: float) -> ManualHandle:
        handle = ManualHandle(self.now + delay, fn)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def cancel(self, handle: ManualHandle) -> None:
        handle.cancel()

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run due timers. Returns how many fired."""
        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self.now = due
            if not handle.cancelled:
                handle.fn()
                fired += 1
        self.now = target
        return fired

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)


class Debouncer:
    """Calls ``fn(value)`` once input has been quiet for ``delay`` seconds."""

    def __init__(self, scheduler: Scheduler, delay: float, fn: Callable[[Any], Any]) -> None:
        self.scheduler = scheduler
        self.delay = delay
        self.fn = fn
        self._handle: Optional[Handle] = None
        self._value: Any = None

    def __call__(self, value: Any = None) -> None:
        self.cancel()
        self._value = value
        self._handle = self.scheduler.schedule(self._fire, self.delay)

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _fire(self) -> None:
        self._handle = None
        self.fn(self._value)

    def cancel(self) -> None:
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None

    def flush(self) -> None:
        """Run a pending call now instead of waiting for the timer."""
        if self._handle is not None:
            self.cancel()
            self.fn(self._value)
