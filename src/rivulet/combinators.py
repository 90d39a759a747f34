"""Combinators — join a fixed set of Observables into one.

Both accept the inputs positionally, as one sequence (results are lists
in input order) or as one mapping (results are dicts with the same keys):

    fork_join(users$, cars$)                  -> [user, car]
    fork_join({"user": users$, "car": cars$}) -> {"user": user, "car": car}
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

from rivulet.observable import Observable
from rivulet.sources import from_
from rivulet.subscriber import Subscriber, operate

_NO_VALUE = object()


def _normalize(args: tuple[Any, ...]) -> tuple[list[Observable], Callable[[list], Any]]:
    if len(args) == 1 and isinstance(args[0], Mapping):
        keys = list(args[0].keys())
        return [from_(v) for v in args[0].values()], lambda values: dict(zip(keys, values))
    if len(args) == 1 and isinstance(args[0], (list, tuple)):
        args = tuple(args[0])
    return [from_(a) for a in args], list


def fork_join(*sources: Any) -> Observable:
    """Wait for every input to complete, then emit their last values once.

    An input that completes without a value completes the result at once,
    with nothing emitted. The first error wins and unsubscribes the rest.
    """
    inputs, build = _normalize(sources)

    def subscribe(subscriber: Subscriber) -> None:
        if not inputs:
            subscriber.complete()
            return
        values = [_NO_VALUE] * len(inputs)
        remaining = len(inputs)

        def watch(index: int, source: Observable) -> None:
            def on_next(value: Any) -> None:
                values[index] = value

            def on_complete() -> None:
                nonlocal remaining
                if values[index] is _NO_VALUE:
                    subscriber.complete()
                    return
                remaining -= 1
                if remaining == 0:
                    subscriber.next(build(values))
                    subscriber.complete()

            source.subscribe(
                operate(subscriber, on_next=on_next, on_complete=on_complete)
            )

        for index, source in enumerate(inputs):
            if subscriber.closed:
                break
            watch(index, source)

    return Observable(subscribe)


def combine_latest(*sources: Any) -> Observable:
    """Emit the latest value of every input whenever any of them emits.

    Nothing is emitted until each input has emitted once. Completes when
    all inputs have completed; the first error wins.
    """
    inputs, build = _normalize(sources)

    def subscribe(subscriber: Subscriber) -> None:
        if not inputs:
            subscriber.complete()
            return
        values = [_NO_VALUE] * len(inputs)
        waiting = len(inputs)
        active = len(inputs)

        def watch(index: int, source: Observable) -> None:
            def on_next(value: Any) -> None:
                nonlocal waiting
                if values[index] is _NO_VALUE:
                    waiting -= 1
                values[index] = value
                if waiting == 0:
                    subscriber.next(build(values))

            def on_complete() -> None:
                nonlocal active
                active -= 1
                if active == 0:
                    subscriber.complete()

            source.subscribe(
                operate(subscriber, on_next=on_next, on_complete=on_complete)
            )

        for index, source in enumerate(inputs):
            if subscriber.closed:
                break
            watch(index, source)

    return Observable(subscribe)
