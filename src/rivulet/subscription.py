"""Subscription — a cancellable handle that owns teardown logic.

Teardowns run once, in the order they were added, on the first call to
unsubscribe(). Subscriptions nest: a child added to a parent is closed
with it, and a child that closes on its own detaches from its parents.
"""

from __future__ import annotations

from typing import Callable, Union

from rivulet.errors import UnsubscriptionError

TeardownLogic = Union["Subscription", Callable[[], None], None]


class Subscription:
    """Handle for work in progress. unsubscribe() is idempotent."""

    __slots__ = ("_closed", "_teardowns", "_parents")

    def __init__(self, teardown: Callable[[], None] | None = None) -> None:
        self._closed = False
        self._teardowns: list[Subscription | Callable[[], None]] = []
        self._parents: list[Subscription] = []
        if teardown is not None:
            self._teardowns.append(teardown)

    @property
    def closed(self) -> bool:
        return self._closed

    def add(self, teardown: TeardownLogic) -> None:
        """Register a teardown. Runs it immediately if already closed."""
        if teardown is None or teardown is self:
            return
        if self._closed:
            _execute(teardown)
            return
        if isinstance(teardown, Subscription):
            if teardown.closed or self in teardown._parents:
                return
            teardown._parents.append(self)
        self._teardowns.append(teardown)

    def remove(self, teardown: Subscription | Callable[[], None]) -> None:
        """Detach a teardown without running it."""
        try:
            self._teardowns.remove(teardown)
        except ValueError:
            return
        if isinstance(teardown, Subscription):
            try:
                teardown._parents.remove(self)
            except ValueError:
                pass

    def unsubscribe(self) -> None:
        """Close and run every registered teardown exactly once."""
        if self._closed:
            return
        self._closed = True

        parents, self._parents = self._parents, []
        for parent in parents:
            parent.remove(self)

        # Swap first: teardowns may re-enter remove() on this subscription.
        teardowns, self._teardowns = self._teardowns, []
        errors: list[Exception] = []
        for teardown in teardowns:
            try:
                _execute(teardown)
            except UnsubscriptionError as exc:
                errors.extend(exc.errors)
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise UnsubscriptionError(errors)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self._teardowns)} teardowns"
        return f"{type(self).__name__}({state})"


def _execute(teardown: Subscription | Callable[[], None]) -> None:
    if isinstance(teardown, Subscription):
        teardown.unsubscribe()
    else:
        teardown()
