"""Translate termination signals into an exception that unwinds open scopes."""

from __future__ import annotations

from contextlib import contextmanager
import signal
from typing import Iterator

from turntable.errors import Interrupted


_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if sig is not None
)


@contextmanager
def interrupt_signals() -> Iterator[None]:
    """Raise Interrupted on SIGTERM/SIGHUP while the block runs.

    SIGINT already raises KeyboardInterrupt. Previous handlers are restored
    on exit.
    """

    def _handle_signal(signum: int, _frame: object) -> None:
        raise Interrupted(signum)

    previous = {sig: signal.signal(sig, _handle_signal) for sig in _SIGNALS}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
