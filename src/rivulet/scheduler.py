"""Schedulers — the injectable clock behind every time-based source/operator.

A scheduler runs an action once after a delay and hands back a
Subscription that cancels it. debounce_time, timer and interval never
touch threads or event loops directly; they go through a scheduler, so
tests drive them with VirtualTimeScheduler instead of waiting.

Call set_scheduler() once from the host to change the process default:
    rivulet.set_scheduler(AsyncioScheduler())
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import threading
import time
from typing import Callable, Protocol

from rivulet.errors import report_unhandled_error
from rivulet.subscription import Subscription

Action = Callable[[], None]


class Scheduler(Protocol):
    def now(self) -> float: ...

    def schedule(self, delay: float, action: Action) -> Subscription: ...


class ThreadingScheduler:
    """Daemon threading.Timer per action.

    Timer callbacks are serialized through one re-entrant lock, so two
    timers never run stream code at the same time.
    """

    _lock = threading.RLock()

    def now(self) -> float:
        return time.monotonic()

    def schedule(self, delay: float, action: Action) -> Subscription:
        def _run() -> None:
            with self._lock:
                if subscription.closed:
                    return
                subscription.unsubscribe()
                try:
                    action()
                except Exception as exc:
                    report_unhandled_error(exc)

        timer = threading.Timer(max(delay, 0.0), _run)
        timer.daemon = True
        subscription = Subscription(timer.cancel)
        timer.start()
        return subscription


class AsyncioScheduler:
    """loop.call_later on the given loop, or the running one."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop if self._loop is not None else asyncio.get_running_loop()

    def now(self) -> float:
        return self._get_loop().time()

    def schedule(self, delay: float, action: Action) -> Subscription:
        def _run() -> None:
            if subscription.closed:
                return
            subscription.unsubscribe()
            try:
                action()
            except Exception as exc:
                report_unhandled_error(exc)

        handle = self._get_loop().call_later(max(delay, 0.0), _run)
        subscription = Subscription(handle.cancel)
        return subscription


class VirtualTimeScheduler:
    """Deterministic clock for tests. Time only moves when told to.

    Actions due at the same instant run in the order they were scheduled.
    Exceptions raised by actions propagate to the caller of advance_*().
    """

    def __init__(self, start: float = 0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, Action, Subscription]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of scheduled actions not yet run or cancelled."""
        return sum(1 for entry in self._queue if not entry[3].closed)

    def schedule(self, delay: float, action: Action) -> Subscription:
        subscription = Subscription()
        due = self._now + max(delay, 0)
        heapq.heappush(self._queue, (due, next(self._seq), action, subscription))
        return subscription

    def advance_to(self, when: float) -> None:
        """Run every action due at or before `when`, then set the clock there."""
        while self._queue and self._queue[0][0] <= when:
            due, _, action, subscription = heapq.heappop(self._queue)
            if subscription.closed:
                continue
            self._now = due
            subscription.unsubscribe()
            action()
        self._now = max(self._now, when)

    def advance_by(self, delta: float) -> None:
        self.advance_to(self._now + delta)

    def flush(self) -> None:
        """Run until nothing is left. Never returns for an endless interval."""
        while self._queue:
            self.advance_to(self._queue[0][0])


_default: Scheduler = ThreadingScheduler()


def set_scheduler(scheduler: Scheduler | None) -> None:
    """Set the process-wide default scheduler. None restores threading timers."""
    global _default
    _default = scheduler if scheduler is not None else ThreadingScheduler()


def get_scheduler() -> Scheduler:
    return _default
