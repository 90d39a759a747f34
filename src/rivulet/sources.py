"""Source factories — primitive Observables.

of/from_ are cold and synchronous for in-memory values. timer/interval go
through a Scheduler. from_event is hot: every subscriber of one from_event
Observable shares a single listener registration on the target.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import itertools
from collections.abc import Iterable
from typing import Any, Callable, TypeVar

from rivulet.observable import Observable
from rivulet.scheduler import Scheduler, get_scheduler
from rivulet.subscriber import Subscriber
from rivulet.subscription import Subscription

T = TypeVar("T")

Listener = Callable[..., None]

# Listener method pairs, tried in order.
_LISTENER_METHODS = (
    ("add_event_listener", "remove_event_listener"),
    ("add_listener", "remove_listener"),
    ("on", "off"),
)


def of(*values: T) -> Observable[T]:
    """Emit each value synchronously, then complete."""

    def subscribe(subscriber: Subscriber[T]) -> None:
        for value in values:
            if subscriber.closed:
                return
            subscriber.next(value)
        subscriber.complete()

    return Observable(subscribe)


def empty() -> Observable[Any]:
    return Observable(lambda subscriber: subscriber.complete())


def never() -> Observable[Any]:
    return Observable()


EMPTY: Observable[Any] = empty()
NEVER: Observable[Any] = never()


def throw_error(error: Exception | Callable[[], Exception]) -> Observable[Any]:
    """Error on subscribe. A callable is called per subscription to build the error."""

    def subscribe(subscriber: Subscriber) -> None:
        subscriber.error(error() if callable(error) else error)

    return Observable(subscribe)


def from_(source: Any, *, loop: asyncio.AbstractEventLoop | None = None) -> Observable:
    """Convert an iterable, future or coroutine into an Observable.

    - Observable: returned unchanged.
    - asyncio / concurrent.futures Future: its result then complete, or its error.
    - coroutine: run as a task on the running loop (or on `loop` from another
      thread); unsubscribing cancels it. A coroutine can only run once.
    - any other iterable: each element synchronously, then complete.
    """
    if isinstance(source, Observable):
        return source
    if asyncio.isfuture(source) or isinstance(source, concurrent.futures.Future):
        return _from_future(source)
    if asyncio.iscoroutine(source):
        return _from_coroutine(source, loop)
    if isinstance(source, Iterable):
        return _from_iterable(source)
    raise TypeError(f"Cannot convert {type(source).__name__!r} to an Observable")


def _from_iterable(iterable: Iterable[T]) -> Observable[T]:
    def subscribe(subscriber: Subscriber[T]) -> None:
        if subscriber.closed:
            return
        for value in iterable:
            subscriber.next(value)
            if subscriber.closed:
                return
        subscriber.complete()

    return Observable(subscribe)


def _from_future(future: Any) -> Observable:
    def subscribe(subscriber: Subscriber) -> Callable[[], None] | None:
        def on_done(done: Any) -> None:
            if done.cancelled():
                subscriber.error(concurrent.futures.CancelledError())
                return
            exc = done.exception()
            if exc is not None:
                subscriber.error(exc)
            else:
                subscriber.next(done.result())
                subscriber.complete()

        future.add_done_callback(on_done)
        if asyncio.isfuture(future):
            return lambda: future.remove_done_callback(on_done)
        return None

    return Observable(subscribe)


def _from_coroutine(coro: Any, loop: asyncio.AbstractEventLoop | None) -> Observable:
    def subscribe(subscriber: Subscriber) -> Callable[[], None]:
        if loop is None:
            task = asyncio.get_running_loop().create_task(coro)
        else:
            task = asyncio.run_coroutine_threadsafe(coro, loop)
        _from_future(task).subscribe(subscriber)
        return task.cancel

    return Observable(subscribe)


class _Broadcaster:
    """One listener on the target, fanned out to every live subscriber.

    The listener is added when the first subscriber arrives and removed
    when the last one leaves.
    """

    __slots__ = ("_add", "_remove", "_name", "_listener", "_subscribers", "_keys")

    def __init__(self, add: Callable, remove: Callable, name: str) -> None:
        self._add = add
        self._remove = remove
        self._name = name
        self._listener: Listener = self._handle
        self._subscribers: dict[int, Subscriber] = {}
        self._keys = itertools.count()

    def attach(self, subscriber: Subscriber) -> Callable[[], None]:
        if not self._subscribers:
            self._add(self._name, self._listener)
        key = next(self._keys)
        self._subscribers[key] = subscriber

        def detach() -> None:
            if self._subscribers.pop(key, None) is not None and not self._subscribers:
                self._remove(self._name, self._listener)

        return detach

    def _handle(self, *args: Any) -> None:
        event = args[0] if len(args) == 1 else args
        for subscriber in list(self._subscribers.values()):
            subscriber.next(event)


def _listener_methods(target: Any) -> tuple[Callable, Callable]:
    for add_name, remove_name in _LISTENER_METHODS:
        add = getattr(target, add_name, None)
        remove = getattr(target, remove_name, None)
        if callable(add) and callable(remove):
            return add, remove
    raise TypeError(f"Invalid event target: {type(target).__name__!r}")


def from_event(target: Any, name: str) -> Observable:
    """Hot stream of `name` events from target. Never completes on its own."""
    add, remove = _listener_methods(target)
    return Observable(_Broadcaster(add, remove, name).attach)


def timer(
    delay: float,
    period: float | None = None,
    *,
    scheduler: Scheduler | None = None,
) -> Observable[int]:
    """Emit 0 after delay, then complete.

    With a period, keep emitting 1, 2, ... every period instead of completing.
    """

    def subscribe(subscriber: Subscriber[int]) -> Callable[[], None]:
        sched = scheduler if scheduler is not None else get_scheduler()
        count = 0
        pending: Subscription | None = None

        def tick() -> None:
            nonlocal count, pending
            subscriber.next(count)
            count += 1
            if period is None:
                subscriber.complete()
            elif not subscriber.closed:
                pending = sched.schedule(period, tick)

        pending = sched.schedule(delay, tick)

        def cancel() -> None:
            if pending is not None:
                pending.unsubscribe()

        return cancel

    return Observable(subscribe)


def interval(period: float, *, scheduler: Scheduler | None = None) -> Observable[int]:
    """Emit 0, 1, 2, ... every period. Never completes on its own."""
    return timer(period, period, scheduler=scheduler)
