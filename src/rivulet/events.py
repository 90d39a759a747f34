"""EventEmitter — a minimal in-process named-event target.

Anything that can add and remove a listener by event name can feed
from_event(). This emitter is the plain-Python target for code that has
no event system of its own:

    clicks = EventEmitter()
    from_event(clicks, "click").subscribe(print)
    clicks.emit("click", {"x": 1})
"""

from __future__ import annotations

from typing import Any, Callable

Listener = Callable[..., None]


class EventEmitter:
    """Named events, listeners called synchronously in registration order."""

    __slots__ = ("_listeners",)

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def add_listener(self, name: str, listener: Listener) -> None:
        self._listeners.setdefault(name, []).append(listener)

    def remove_listener(self, name: str, listener: Listener) -> None:
        listeners = self._listeners.get(name)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            pass  # already removed
        if not listeners:
            del self._listeners[name]

    def emit(self, name: str, *args: Any) -> None:
        """Call every listener of `name` with args."""
        for listener in list(self._listeners.get(name, ())):
            listener(*args)

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, ()))

    def __repr__(self) -> str:
        counts = {name: len(ls) for name, ls in self._listeners.items()}
        return f"EventEmitter({counts!r})"
