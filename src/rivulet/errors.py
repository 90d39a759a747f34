"""Error types and the unhandled-error hook.

An error nobody handles (no terminal error callback, a consumer callback
that raises, a producer that throws after terminating) is never dropped:
it goes to the handler installed with set_unhandled_error_handler(), which
by default logs it.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger("rivulet.errors")


class RivuletError(Exception):
    """Base class for errors raised by rivulet itself."""


class UnsubscriptionError(RivuletError):
    """One or more teardowns raised while a subscription was closing.

    Every teardown still runs; the failures are collected here.
    """

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        lines = "\n".join(f"  {i}) {e!r}" for i, e in enumerate(self.errors, 1))
        super().__init__(f"{len(self.errors)} error(s) during unsubscribe:\n{lines}")


def _log_unhandled(err: Exception) -> None:
    logger.error("Unhandled error in observable chain: %r", err, exc_info=err)


_handler: Callable[[Exception], None] = _log_unhandled


def set_unhandled_error_handler(handler: Callable[[Exception], None] | None) -> None:
    """Install the process-wide sink for unhandled errors.

    Pass None to restore the default (log at ERROR on "rivulet.errors").
    """
    global _handler
    _handler = handler if handler is not None else _log_unhandled


def report_unhandled_error(err: Exception) -> None:
    """Hand an error that reached no error callback to the host."""
    try:
        _handler(err)
    except Exception:
        logger.exception("Unhandled error handler failed")
