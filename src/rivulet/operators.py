"""Pipeable operators: Observable -> Observable transforms.

Each operator allocates its state inside the subscribe procedure, so one
operator instance can be shared by any number of pipelines and
subscriptions. Exceptions raised by user callbacks (predicate, projection,
side effect, selector) terminate the chain through its error channel.

    from rivulet import of, operators as ops

    of(1, 7, 3, 6, 2).pipe(
        ops.filter(lambda v: v > 5),
        ops.map(lambda v: v * 2),
    ).subscribe(print)   # 14, 12
"""

from __future__ import annotations

import threading
from typing import Any, Callable, TypeVar

from rivulet.flattening import (
    FlattenState,
    concat_map,
    exhaust_map,
    merge_map,
    switch_map,
)
from rivulet.observable import Observable, Operator
from rivulet.scheduler import Scheduler, get_scheduler
from rivulet.sources import from_
from rivulet.subscriber import Subscriber, as_observer, operate
from rivulet.subscription import Subscription

T = TypeVar("T")
R = TypeVar("R")

__all__ = [
    "filter",
    "map",
    "tap",
    "debounce_time",
    "catch_error",
    "concat_map",
    "switch_map",
    "merge_map",
    "exhaust_map",
    "FlattenState",
]


def filter(predicate: Callable[[T], bool]) -> Operator[T, T]:
    """Forward only the values for which predicate is true."""

    def _operator(source: Observable[T]) -> Observable[T]:
        def subscribe(subscriber: Subscriber[T]) -> Subscription:
            def on_next(value: T) -> None:
                if predicate(value):
                    subscriber.next(value)

            return source.subscribe(operate(subscriber, on_next=on_next))

        return Observable(subscribe)

    return _operator


def map(project: Callable[[T], R]) -> Operator[T, R]:
    """Forward project(value) for every value."""

    def _operator(source: Observable[T]) -> Observable[R]:
        def subscribe(subscriber: Subscriber[R]) -> Subscription:
            def on_next(value: T) -> None:
                subscriber.next(project(value))

            return source.subscribe(operate(subscriber, on_next=on_next))

        return Observable(subscribe)

    return _operator


def tap(
    observer: Any = None,
    error: Callable[[Exception], None] | None = None,
    complete: Callable[[], None] | None = None,
) -> Operator[T, T]:
    """Run side effects without changing what flows through.

    Accepts the same observer shapes as subscribe(). A side effect that
    raises becomes the stream's error.
    """
    callbacks = as_observer(observer, error, complete)

    def _operator(source: Observable[T]) -> Observable[T]:
        def subscribe(subscriber: Subscriber[T]) -> Subscription:
            def on_next(value: T) -> None:
                callbacks.next(value)
                subscriber.next(value)

            def on_error(err: Exception) -> None:
                if callbacks.error is not None:
                    callbacks.error(err)
                subscriber.error(err)

            def on_complete() -> None:
                callbacks.complete()
                subscriber.complete()

            return source.subscribe(
                operate(subscriber, on_next=on_next, on_error=on_error, on_complete=on_complete)
            )

        return Observable(subscribe)

    return _operator


def debounce_time(duration: float, *, scheduler: Scheduler | None = None) -> Operator[T, T]:
    """Emit a value only after `duration` passes without another one.

    Each value restarts the timer. On completion a pending value is
    flushed before complete is forwarded; on error it is dropped.

    Producers and timers may run on different threads: the pending value
    and timer are guarded by a per-subscription lock, and a timer that was
    superseded while already firing emits nothing.
    """

    def _operator(source: Observable[T]) -> Observable[T]:
        def subscribe(subscriber: Subscriber[T]) -> Subscription:
            sched = scheduler if scheduler is not None else get_scheduler()
            lock = threading.Lock()
            pending: Subscription | None = None
            generation = 0
            has_value = False
            last: Any = None

            def _cancel_locked() -> None:
                nonlocal pending, generation
                generation += 1
                if pending is not None:
                    pending.unsubscribe()
                    pending = None

            def _take_locked() -> tuple[bool, Any]:
                nonlocal has_value, last
                taken = (has_value, last)
                has_value, last = False, None
                return taken

            def cancel() -> None:
                with lock:
                    _cancel_locked()

            def fire(token: int) -> None:
                nonlocal pending
                with lock:
                    if token != generation:
                        return
                    pending = None
                    ready, value = _take_locked()
                if ready:
                    subscriber.next(value)

            def on_next(value: T) -> None:
                nonlocal pending, has_value, last
                with lock:
                    _cancel_locked()
                    has_value, last = True, value
                    token = generation
                    pending = sched.schedule(duration, lambda: fire(token))

            def on_complete() -> None:
                with lock:
                    _cancel_locked()
                    ready, value = _take_locked()
                if ready:
                    subscriber.next(value)
                subscriber.complete()

            return source.subscribe(
                operate(subscriber, on_next=on_next, on_complete=on_complete, on_finalize=cancel)
            )

        return Observable(subscribe)

    return _operator


def catch_error(selector: Callable[[Exception], Any]) -> Operator[T, Any]:
    """On error, continue with the Observable returned by selector(err).

    selector may return anything from_() accepts (EMPTY to finish quietly).
    Recovery is local: values after the failure come from the replacement,
    the failed source is not resubscribed.
    """

    def _operator(source: Observable[T]) -> Observable[Any]:
        def subscribe(subscriber: Subscriber[Any]) -> Subscription:
            def on_error(err: Exception) -> None:
                from_(selector(err)).subscribe(subscriber)

            return source.subscribe(operate(subscriber, on_error=on_error))

        return Observable(subscribe)

    return _operator
