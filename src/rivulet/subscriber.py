"""Subscribers — the three-channel sink producers deliver to.

Observer shapes (a bare callable, positional callbacks, an object or a
mapping with next/error/complete) are normalized once into an Observer
record. A Subscriber wraps that record and enforces the protocol: after
error() or complete(), or after unsubscribe(), every further call is
ignored.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Generic, NamedTuple, TypeVar

from rivulet.errors import report_unhandled_error
from rivulet.subscription import Subscription

T = TypeVar("T")


def _noop(*_args: Any) -> None:
    pass


class Observer(NamedTuple):
    """Normalized observer. error is None when the caller supplied none."""

    next: Callable[[Any], None] = _noop
    error: Callable[[Exception], None] | None = None
    complete: Callable[[], None] = _noop


def as_observer(
    observer: Any = None,
    error: Callable[[Exception], None] | None = None,
    complete: Callable[[], None] | None = None,
) -> Observer:
    """Normalize any accepted observer shape into an Observer."""
    if isinstance(observer, Observer):
        base = observer
    elif observer is None:
        base = Observer()
    elif isinstance(observer, Mapping):
        base = Observer(
            observer.get("next") or _noop,
            observer.get("error"),
            observer.get("complete") or _noop,
        )
    elif callable(observer):
        base = Observer(observer)
    else:
        base = Observer(
            getattr(observer, "next", None) or _noop,
            getattr(observer, "error", None),
            getattr(observer, "complete", None) or _noop,
        )
    if error is not None:
        base = base._replace(error=error)
    if complete is not None:
        base = base._replace(complete=complete)
    return base


def _guarded(fn: Callable[..., None]) -> Callable[..., None]:
    def call(*args: Any) -> None:
        try:
            fn(*args)
        except Exception as exc:
            report_unhandled_error(exc)

    return call


def _consumer(observer: Observer) -> Observer:
    """Wrap a terminal observer so its own failures go to the unhandled hook."""
    return Observer(
        _guarded(observer.next),
        _guarded(observer.error) if observer.error is not None else report_unhandled_error,
        _guarded(observer.complete),
    )


class Subscriber(Subscription, Generic[T]):
    """Value sink handed to a subscribe procedure.

    Built on another Subscriber it forwards to it and chains into it, so
    that unsubscribing downstream unsubscribes this one. Built on an
    Observer it is a terminal consumer.
    """

    __slots__ = ("_destination", "_stopped")

    def __init__(self, destination: Subscriber | Observer | None = None) -> None:
        super().__init__()
        self._stopped = False
        if isinstance(destination, Subscriber):
            self._destination: Subscriber | Observer = destination
            destination.add(self)
        else:
            self._destination = _consumer(destination or Observer())

    @property
    def closed(self) -> bool:
        return self._stopped or self._closed

    def next(self, value: T) -> None:
        if not self._stopped and not self._closed:
            self._next(value)

    def error(self, err: Exception) -> None:
        if self._stopped or self._closed:
            return
        self._stopped = True
        try:
            self._error(err)
        finally:
            self.unsubscribe()

    def complete(self) -> None:
        if self._stopped or self._closed:
            return
        self._stopped = True
        try:
            self._complete()
        finally:
            self.unsubscribe()

    def unsubscribe(self) -> None:
        self._stopped = True
        super().unsubscribe()

    def _next(self, value: T) -> None:
        self._destination.next(value)

    def _error(self, err: Exception) -> None:
        self._destination.error(err)

    def _complete(self) -> None:
        self._destination.complete()


class OperatorSubscriber(Subscriber[T]):
    """Subscriber with operator hooks.

    A hook that raises sends the exception to the destination's error
    channel. Missing hooks forward to the destination unchanged.
    """

    __slots__ = ("_on_next", "_on_error", "_on_complete")

    def __init__(
        self,
        destination: Subscriber,
        on_next: Callable[[T], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        on_complete: Callable[[], None] | None = None,
        on_finalize: Callable[[], None] | None = None,
    ) -> None:
        super().__init__(destination)
        self._on_next = on_next
        self._on_error = on_error
        self._on_complete = on_complete
        if on_finalize is not None:
            self.add(on_finalize)

    def _next(self, value: T) -> None:
        if self._on_next is None:
            self._destination.next(value)
            return
        try:
            self._on_next(value)
        except Exception as exc:
            self._destination.error(exc)

    def _error(self, err: Exception) -> None:
        if self._on_error is None:
            self._destination.error(err)
            return
        try:
            self._on_error(err)
        except Exception as exc:
            self._destination.error(exc)

    def _complete(self) -> None:
        if self._on_complete is None:
            self._destination.complete()
            return
        try:
            self._on_complete()
        except Exception as exc:
            self._destination.error(exc)


def operate(
    destination: Subscriber,
    *,
    on_next: Callable[[Any], None] | None = None,
    on_error: Callable[[Exception], None] | None = None,
    on_complete: Callable[[], None] | None = None,
    on_finalize: Callable[[], None] | None = None,
) -> OperatorSubscriber:
    """Build the upstream-facing subscriber of an operator."""
    return OperatorSubscriber(destination, on_next, on_error, on_complete, on_finalize)
