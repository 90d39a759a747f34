"""Shared fixtures: virtual clock, unhandled-error capture, event recorder."""

import pytest

from rivulet import Observable, Subscription, VirtualTimeScheduler, set_unhandled_error_handler


class Recorder:
    """Observer that records every event, stamped with virtual time if given a clock."""

    def __init__(self, clock=None):
        self.clock = clock
        self.events = []

    def _stamp(self, event):
        self.events.append(event if self.clock is None else (self.clock.now(), *event))

    def next(self, value):
        self._stamp(("next", value))

    def error(self, err):
        self._stamp(("error", err))

    def complete(self):
        self._stamp(("complete",))

    @property
    def values(self):
        return [e[-1] for e in self.events if "next" in e]


@pytest.fixture
def scheduler():
    return VirtualTimeScheduler()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def timed(scheduler):
    """Recorder stamping events with the virtual clock: (time, kind, value)."""
    return Recorder(scheduler)


@pytest.fixture
def unhandled():
    errors = []
    set_unhandled_error_handler(errors.append)
    yield errors
    set_unhandled_error_handler(None)


@pytest.fixture
def timeline(scheduler):
    """Build a cold Observable that emits on the virtual clock.

    timeline((0, "a"), (10, "b"), complete_at=20)
    timeline((0, "a"), error_at=(5, ValueError("x")))
    """

    def build(*emissions, complete_at=None, error_at=None):
        def subscribe(subscriber):
            pending = Subscription()
            for due, value in emissions:
                pending.add(scheduler.schedule(due, lambda v=value: subscriber.next(v)))
            if complete_at is not None:
                pending.add(scheduler.schedule(complete_at, subscriber.complete))
            if error_at is not None:
                due, err = error_at
                pending.add(scheduler.schedule(due, lambda: subscriber.error(err)))
            return pending

        return Observable(subscribe)

    return build
