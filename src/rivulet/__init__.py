"""rivulet: push-based reactive streams for Python."""

from importlib.metadata import version as _version

__version__ = _version("rivulet")

from rivulet.errors import (
    RivuletError,
    UnsubscriptionError,
    report_unhandled_error,
    set_unhandled_error_handler,
)
from rivulet.subscription import Subscription
from rivulet.subscriber import Observer, Subscriber, as_observer
from rivulet.observable import Observable, pipe
from rivulet.scheduler import (
    AsyncioScheduler,
    Scheduler,
    ThreadingScheduler,
    VirtualTimeScheduler,
    get_scheduler,
    set_scheduler,
)
from rivulet.sources import (
    EMPTY,
    NEVER,
    empty,
    from_,
    from_event,
    interval,
    never,
    of,
    throw_error,
    timer,
)
from rivulet.combinators import combine_latest, fork_join
from rivulet.events import EventEmitter
from rivulet import operators
# textual NOT auto-imported — opt-in only

__all__ = [
    "Observable",
    "Observer",
    "Subscriber",
    "Subscription",
    "as_observer",
    "pipe",
    "operators",
    "of",
    "from_",
    "from_event",
    "timer",
    "interval",
    "empty",
    "never",
    "throw_error",
    "EMPTY",
    "NEVER",
    "fork_join",
    "combine_latest",
    "EventEmitter",
    "Scheduler",
    "ThreadingScheduler",
    "AsyncioScheduler",
    "VirtualTimeScheduler",
    "set_scheduler",
    "get_scheduler",
    "RivuletError",
    "UnsubscriptionError",
    "report_unhandled_error",
    "set_unhandled_error_handler",
]
