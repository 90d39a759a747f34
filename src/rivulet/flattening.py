"""Flattening operators — map each value to an inner Observable and merge.

All four share one engine, _Flattener, and differ only in what happens
when an outer value arrives while inner work is running:

    concat_map   queue it; start when the current inner completes
    switch_map   cancel the current inner, start the new one at once
    merge_map    start it alongside the others (optionally up to a limit)
    exhaust_map  drop it

The result completes once the outer source has completed and no inner
work is left. An error from the outer source or from any inner tears
down everything and is forwarded. To keep the outer stream alive across
inner failures, put catch_error inside the projection:

    clicks.pipe(
        concat_map(lambda q: fetch(q).pipe(catch_error(lambda e: of(None)))),
    )
"""

from __future__ import annotations

import enum
import itertools
from collections import deque
from typing import Any, Callable, TypeVar

from rivulet.observable import Observable, Operator
from rivulet.sources import from_
from rivulet.subscriber import OperatorSubscriber, Subscriber, operate
from rivulet.subscription import Subscription

T = TypeVar("T")

Project = Callable[[T], Any]


class FlattenState(enum.Enum):
    IDLE = "idle"
    OUTER_ACTIVE_NO_INNER = "outer_active_no_inner"
    INNER_ACTIVE = "inner_active"
    COMPLETING = "completing"  # outer completed, inner work still draining
    DONE = "done"


class _Policy(enum.Enum):
    MERGE = "merge"
    SWITCH = "switch"
    EXHAUST = "exhaust"


class _Flattener:
    """State of one flattening subscription.

    Active inners live in a dict keyed by a per-subscription counter, so
    teardown cancels them in the order they started.
    """

    __slots__ = (
        "_destination",
        "_project",
        "_policy",
        "_concurrent",
        "_inners",
        "_buffer",
        "_keys",
        "_outer_done",
        "_draining",
        "state",
    )

    def __init__(
        self,
        destination: Subscriber,
        project: Project,
        policy: _Policy,
        concurrent: int | None,
    ) -> None:
        self._destination = destination
        self._project = project
        self._policy = policy
        self._concurrent = concurrent
        self._inners: dict[int, OperatorSubscriber] = {}
        self._buffer: deque[Any] = deque()
        self._keys = itertools.count()
        self._outer_done = False
        self._draining = False
        self.state = FlattenState.IDLE

    def run(self, source: Observable) -> Subscription:
        outer = operate(
            self._destination,
            on_next=self._on_outer_next,
            on_complete=self._on_outer_complete,
        )
        self._destination.add(self._teardown)
        self.state = FlattenState.OUTER_ACTIVE_NO_INNER
        return source.subscribe(outer)

    def _on_outer_next(self, value: Any) -> None:
        if self._policy is _Policy.EXHAUST and self._inners:
            return
        if self._policy is _Policy.SWITCH:
            self._cancel_inners()
        if self._buffer or (
            self._concurrent is not None and len(self._inners) >= self._concurrent
        ):
            self._buffer.append(value)
            return
        self._start(value)

    def _on_outer_complete(self) -> None:
        self._outer_done = True
        self._update()

    def _start(self, value: Any) -> None:
        inner_source = from_(self._project(value))
        key = next(self._keys)

        def on_inner_complete() -> None:
            self._inners.pop(key, None)
            self._drain()

        inner = operate(self._destination, on_complete=on_inner_complete)
        self._inners[key] = inner
        self.state = FlattenState.INNER_ACTIVE
        inner_source.subscribe(inner)

    def _drain(self) -> None:
        # Re-entered by inners that complete synchronously inside _start();
        # the running loop fills the freed slot instead of recursing.
        if self._draining:
            return
        self._draining = True
        try:
            while self._buffer and (
                self._concurrent is None or len(self._inners) < self._concurrent
            ):
                if self._destination.closed:
                    return
                self._start(self._buffer.popleft())
        finally:
            self._draining = False
        self._update()

    def _update(self) -> None:
        if self.state is FlattenState.DONE:
            return
        if self._inners or self._buffer:
            self.state = FlattenState.COMPLETING if self._outer_done else FlattenState.INNER_ACTIVE
        elif self._outer_done:
            self.state = FlattenState.DONE
            self._destination.complete()
        else:
            self.state = FlattenState.OUTER_ACTIVE_NO_INNER

    def _cancel_inners(self) -> None:
        inners = list(self._inners.values())
        self._inners.clear()
        for inner in inners:
            inner.unsubscribe()

    def _teardown(self) -> None:
        self.state = FlattenState.DONE
        self._buffer.clear()
        self._cancel_inners()


def _flatten(project: Project, policy: _Policy, concurrent: int | None = None) -> Operator:
    def _operator(source: Observable) -> Observable:
        def subscribe(subscriber: Subscriber) -> Subscription:
            return _Flattener(subscriber, project, policy, concurrent).run(source)

        return Observable(subscribe)

    return _operator


def merge_map(project: Project, concurrent: int | None = None) -> Operator:
    """Run inner Observables concurrently, emitting as they emit.

    With `concurrent`, at most that many inners run at once; further outer
    values wait in arrival order.
    """
    if concurrent is not None and concurrent < 1:
        raise ValueError(f"concurrent must be >= 1, got {concurrent}")
    return _flatten(project, _Policy.MERGE, concurrent)


def concat_map(project: Project) -> Operator:
    """Run inner Observables one at a time, in outer order."""
    return _flatten(project, _Policy.MERGE, 1)


def switch_map(project: Project) -> Operator:
    """Keep only the newest inner Observable, cancelling the previous one."""
    return _flatten(project, _Policy.SWITCH)


def exhaust_map(project: Project) -> Operator:
    """Ignore outer values while an inner Observable is running."""
    return _flatten(project, _Policy.EXHAUST)
