"""Textual integration for rivulet. Opt-in — requires textual.

Two pieces:
- TextualScheduler drives debounce_time/timer/interval from the app's own
  timers, so time-based streams run on the app's event loop.
- subscribe() delivers a stream to widget code: values emitted from other
  threads are marshaled with call_from_thread, next values are skipped
  while the app is not running or inside `with pause(app):`, and NoMatches
  raised by widget queries is swallowed.
"""

import threading
import time
from contextlib import contextmanager

from textual.css.query import NoMatches

from rivulet.subscriber import Observer, as_observer
from rivulet.subscription import Subscription

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Hold back next deliveries during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


class TextualScheduler:
    """Scheduler backed by app.set_timer()."""

    def __init__(self, app) -> None:
        self._app = app

    def now(self) -> float:
        return time.monotonic()

    def schedule(self, delay, action) -> Subscription:
        timer = self._app.set_timer(max(delay, 0.0), action)
        return Subscription(timer.stop)


def subscribe(app, source, observer=None, error=None, complete=None) -> Subscription:
    """source.subscribe() that safely bridges to Textual widgets."""
    target = as_observer(observer, error, complete)
    _main = threading.get_ident()

    def _on_app_thread(fn, *args):
        if threading.get_ident() != _main:
            app.call_from_thread(fn, *args)
        else:
            fn(*args)

    def _safe_next(value):
        if not is_safe(app):
            return
        try:
            target.next(value)
        except NoMatches:
            pass

    def _next(value):
        if is_safe(app):
            _on_app_thread(_safe_next, value)

    def _error(err):
        _on_app_thread(target.error, err)

    def _complete():
        _on_app_thread(target.complete)

    # Without an error callback, errors go to the unhandled-error hook as usual.
    return source.subscribe(Observer(_next, _error if target.error else None, _complete))
