"""Tests for source factories: of, from_, from_event, timer, interval."""

import asyncio
import concurrent.futures
from unittest.mock import Mock

import pytest

from rivulet import (
    EMPTY,
    NEVER,
    EventEmitter,
    from_,
    from_event,
    get_scheduler,
    interval,
    of,
    set_scheduler,
    throw_error,
    timer,
)
from rivulet import operators as ops


class TestOf:
    def test_emits_synchronously_then_completes(self, recorder):
        of(1, 2, 3).subscribe(recorder)
        assert recorder.events == [("next", 1), ("next", 2), ("next", 3), ("complete",)]

    def test_cold(self):
        source = of("a")
        first, second = [], []
        source.subscribe(first.append)
        source.subscribe(second.append)
        assert first == second == ["a"]


class TestFrom:
    def test_iterable(self, recorder):
        from_([1, 2]).subscribe(recorder)
        assert recorder.events == [("next", 1), ("next", 2), ("complete",)]

    def test_string_is_iterated(self):
        received = []
        from_("ab").subscribe(received.append)
        assert received == ["a", "b"]

    def test_stops_pulling_once_closed(self, recorder):
        pulled = []

        def numbers():
            for n in (1, 2, 3):
                pulled.append(n)
                yield n

        from_(numbers()).pipe(ops.map(lambda v: 1 // (2 - v))).subscribe(recorder)
        assert pulled == [1, 2]

    def test_iterator_failure_is_error(self, recorder):
        def broken():
            yield 1
            raise KeyError("gone")

        from_(broken()).subscribe(recorder)
        assert recorder.values == [1]
        assert isinstance(recorder.events[-1][1], KeyError)

    def test_observable_passes_through(self):
        source = of(1)
        assert from_(source) is source

    def test_rejects_unsupported_input(self):
        with pytest.raises(TypeError):
            from_(42)


class TestFromFuture:
    def test_resolved_future(self, recorder):
        future = concurrent.futures.Future()
        future.set_result("done")
        from_(future).subscribe(recorder)
        assert recorder.events == [("next", "done"), ("complete",)]

    def test_resolves_later(self, recorder):
        future = concurrent.futures.Future()
        from_(future).subscribe(recorder)
        assert recorder.events == []
        future.set_result(5)
        assert recorder.events == [("next", 5), ("complete",)]

    def test_rejected_future(self, recorder):
        err = ValueError("rejected")
        future = concurrent.futures.Future()
        from_(future).subscribe(recorder)
        future.set_exception(err)
        assert recorder.events == [("error", err)]

    def test_cancelled_future(self, recorder):
        future = concurrent.futures.Future()
        from_(future).subscribe(recorder)
        future.cancel()
        assert len(recorder.events) == 1
        assert isinstance(recorder.events[0][1], concurrent.futures.CancelledError)

    def test_unsubscribed_before_resolution(self, recorder):
        future = concurrent.futures.Future()
        from_(future).subscribe(recorder).unsubscribe()
        future.set_result(1)
        assert recorder.events == []

    def test_coroutine(self):
        async def fetch():
            await asyncio.sleep(0)
            return {"description": "random"}

        async def main():
            received = []
            done = asyncio.Event()
            from_(fetch()).subscribe(received.append, complete=done.set)
            await asyncio.wait_for(done.wait(), timeout=1)
            return received

        assert asyncio.run(main()) == [{"description": "random"}]

    def test_coroutine_failure(self):
        async def fetch():
            raise ConnectionError("offline")

        async def main():
            failed = asyncio.Event()
            errors = []

            def on_error(err):
                errors.append(err)
                failed.set()

            from_(fetch()).subscribe(error=on_error)
            await asyncio.wait_for(failed.wait(), timeout=1)
            return errors

        errors = asyncio.run(main())
        assert [type(e) for e in errors] == [ConnectionError]

    def test_unsubscribe_cancels_coroutine(self):
        async def main():
            started = asyncio.Event()
            cancelled = asyncio.Event()

            async def work():
                started.set()
                try:
                    await asyncio.sleep(10)
                except asyncio.CancelledError:
                    cancelled.set()
                    raise

            received = []
            sub = from_(work()).subscribe(received.append)
            await asyncio.wait_for(started.wait(), timeout=1)
            sub.unsubscribe()
            await asyncio.wait_for(cancelled.wait(), timeout=1)
            return received

        assert asyncio.run(main()) == []


class _DomLikeTarget:
    def __init__(self):
        self.listeners = []

    def add_event_listener(self, name, listener):
        self.listeners.append((name, listener))

    def remove_event_listener(self, name, listener):
        self.listeners.remove((name, listener))


class _OnOffTarget:
    def __init__(self):
        self.handlers = {}

    def on(self, name, handler):
        self.handlers[name] = handler

    def off(self, name, handler):
        if self.handlers.get(name) == handler:
            del self.handlers[name]


class TestFromEvent:
    def test_forwards_events(self):
        emitter = EventEmitter()
        received = []
        from_event(emitter, "click").subscribe(received.append)
        emitter.emit("click", {"x": 1})
        emitter.emit("other", "ignored")
        emitter.emit("click", {"x": 2})
        assert received == [{"x": 1}, {"x": 2}]

    def test_multiple_arguments_become_tuple(self):
        emitter = EventEmitter()
        received = []
        from_event(emitter, "move").subscribe(received.append)
        emitter.emit("move", 3, 4)
        assert received == [(3, 4)]

    def test_one_registration_shared_by_subscribers(self):
        emitter = EventEmitter()
        clicks = from_event(emitter, "click")
        a, b = [], []
        sub_a = clicks.subscribe(a.append)
        sub_b = clicks.subscribe(b.append)
        assert emitter.listener_count("click") == 1

        emitter.emit("click", 1)
        sub_a.unsubscribe()
        assert emitter.listener_count("click") == 1
        emitter.emit("click", 2)
        sub_b.unsubscribe()

        assert a == [1]
        assert b == [1, 2]
        assert emitter.listener_count("click") == 0

    def test_resubscribe_after_all_left(self):
        emitter = EventEmitter()
        clicks = from_event(emitter, "click")
        clicks.subscribe().unsubscribe()
        received = []
        clicks.subscribe(received.append)
        emitter.emit("click", "again")
        assert received == ["again"]
        assert emitter.listener_count("click") == 1

    def test_never_completes(self, recorder):
        emitter = EventEmitter()
        from_event(emitter, "input").subscribe(recorder)
        emitter.emit("input", "v")
        assert recorder.events == [("next", "v")]

    def test_dom_like_target(self):
        target = _DomLikeTarget()
        received = []
        sub = from_event(target, "input").subscribe(received.append)
        name, listener = target.listeners[0]
        listener("typed")
        sub.unsubscribe()
        assert name == "input"
        assert received == ["typed"]
        assert target.listeners == []

    def test_on_off_target(self):
        target = _OnOffTarget()
        sub = from_event(target, "tick").subscribe()
        assert "tick" in target.handlers
        sub.unsubscribe()
        assert target.handlers == {}

    def test_invalid_target(self):
        with pytest.raises(TypeError, match="Invalid event target"):
            from_event(object(), "click")

    def test_pipeline_over_events(self):
        emitter = EventEmitter()
        received = []
        from_event(emitter, "input").pipe(
            ops.map(lambda event: event["value"]),
            ops.filter(lambda value: value != ""),
        ).subscribe(received.append)
        emitter.emit("input", {"value": ""})
        emitter.emit("input", {"value": "users"})
        assert received == ["users"]


class TestTimer:
    def test_emits_zero_once_then_completes(self, scheduler, timed):
        timer(100, scheduler=scheduler).subscribe(timed)
        scheduler.flush()
        assert timed.events == [(100, "next", 0), (100, "complete")]

    def test_unsubscribe_cancels(self, scheduler, timed):
        sub = timer(100, scheduler=scheduler).subscribe(timed)
        sub.unsubscribe()
        assert scheduler.pending == 0
        scheduler.flush()
        assert timed.events == []

    def test_with_period(self, scheduler, timed):
        sub = timer(5, 10, scheduler=scheduler).subscribe(timed)
        scheduler.advance_to(25)
        sub.unsubscribe()
        assert timed.events == [(5, "next", 0), (15, "next", 1), (25, "next", 2)]

    def test_uses_default_scheduler(self, scheduler, timed):
        previous = get_scheduler()
        set_scheduler(scheduler)
        try:
            timer(10).subscribe(timed)
        finally:
            set_scheduler(previous)
        scheduler.flush()
        assert timed.events == [(10, "next", 0), (10, "complete")]


class TestInterval:
    def test_counts_every_period(self, scheduler, timed):
        interval(10, scheduler=scheduler).subscribe(timed)
        scheduler.advance_to(35)
        assert timed.events == [(10, "next", 0), (20, "next", 1), (30, "next", 2)]

    def test_unsubscribe_stops(self, scheduler, timed):
        sub = interval(10, scheduler=scheduler).subscribe(timed)
        scheduler.advance_to(10)
        sub.unsubscribe()
        assert scheduler.pending == 0
        scheduler.advance_to(100)
        assert timed.values == [0]

    def test_each_subscription_counts_from_zero(self, scheduler):
        ticks = interval(10, scheduler=scheduler)
        a, b = [], []
        ticks.subscribe(a.append)
        scheduler.advance_to(20)
        ticks.subscribe(b.append)
        scheduler.advance_to(30)
        assert a == [0, 1, 2]
        assert b == [0]


class TestConstants:
    def test_empty(self, recorder):
        EMPTY.subscribe(recorder)
        assert recorder.events == [("complete",)]

    def test_never(self, recorder):
        sub = NEVER.subscribe(recorder)
        assert recorder.events == []
        assert not sub.closed

    def test_throw_error_factory_runs_per_subscription(self, recorder):
        factory = Mock(side_effect=lambda: ValueError("fresh"))
        source = throw_error(factory)
        source.subscribe(recorder)
        source.subscribe(recorder)
        assert factory.call_count == 2
        assert [e[0] for e in recorder.events] == ["error", "error"]
