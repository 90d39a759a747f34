"""Observable — a lazy, re-runnable description of a value sequence.

An Observable wraps a subscribe procedure. Nothing runs until subscribe()
is called, and each call runs the procedure again with a fresh Subscriber:
every subscription is an independent execution with its own state.

    numbers = Observable(lambda s: (s.next(1), s.next(2), s.complete()))
    numbers.pipe(ops.map(lambda v: v * 10)).subscribe(print)
"""

from __future__ import annotations

from functools import reduce
from typing import Any, Callable, Generic, TypeVar

from rivulet.errors import report_unhandled_error
from rivulet.subscriber import Subscriber, as_observer
from rivulet.subscription import Subscription, TeardownLogic

T = TypeVar("T")
R = TypeVar("R")

SubscribeProcedure = Callable[[Subscriber[T]], TeardownLogic]


def _never_subscribe(_subscriber: Subscriber) -> None:
    return None


class Observable(Generic[T]):
    """Cold, lazy sequence of values delivered over time."""

    __slots__ = ("_subscribe",)

    def __init__(self, subscribe: SubscribeProcedure[T] | None = None) -> None:
        self._subscribe = subscribe if subscribe is not None else _never_subscribe

    def subscribe(
        self,
        observer: Any = None,
        error: Callable[[Exception], None] | None = None,
        complete: Callable[[], None] | None = None,
    ) -> Subscription:
        """Start an execution. Returns its Subscription synchronously.

        observer may be a next callback, an object or mapping with optional
        next/error/complete members, or a Subscriber (used as is).
        """
        if isinstance(observer, Subscriber) and error is None and complete is None:
            subscriber = observer
        else:
            subscriber = Subscriber(as_observer(observer, error, complete))

        try:
            teardown = self._subscribe(subscriber)
        except Exception as exc:
            if subscriber.closed:
                report_unhandled_error(exc)
            else:
                subscriber.error(exc)
        else:
            subscriber.add(teardown)
        return subscriber

    def pipe(self, *operators: Callable[[Observable], Observable]) -> Observable:
        """Apply operators left to right."""
        return pipe(*operators)(self)

    def __repr__(self) -> str:
        name = getattr(self._subscribe, "__qualname__", type(self._subscribe).__name__)
        return f"Observable({name})"


Operator = Callable[[Observable[T]], Observable[R]]


def _identity(source: Observable) -> Observable:
    return source


def pipe(*operators: Callable[[Observable], Observable]) -> Callable[[Observable], Observable]:
    """Compose operators into one, applied left to right."""
    if not operators:
        return _identity
    if len(operators) == 1:
        return operators[0]

    def piped(source: Observable) -> Observable:
        return reduce(lambda acc, op: op(acc), operators, source)

    return piped
