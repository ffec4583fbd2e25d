"""Termination signal handling.

adp turns SIGINT, SIGTERM and SIGHUP into a TerminationRequested exception
so that cleanup runs through ordinary ``with``/``finally`` blocks, and can
hold those signals back while a lock changes hands.
"""

import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from types import FrameType

from ..constants import TERMINATION_SIGNALS
from ..errors import TerminationRequested

SignalHandler = Callable[[int, FrameType | None], None]


def raise_termination(signum: int, frame: FrameType | None) -> None:
    """Handle a termination signal by unwinding the main thread."""
    raise TerminationRequested(signum)


@contextmanager
def termination_handlers(handler: SignalHandler = raise_termination) -> Iterator[None]:
    """Install a handler for the termination signals, restoring the old ones on exit."""
    original: dict[int, SignalHandler | int | None] = {}
    try:
        # Swap all handlers at once so a signal never sees a half-installed set
        with deferred_signals():
            for sig in TERMINATION_SIGNALS:
                original[sig] = signal.signal(sig, handler)
        yield
    finally:
        with deferred_signals():
            for sig, previous in original.items():
                # None means the previous handler was not installed from Python
                signal.signal(sig, previous if previous is not None else signal.SIG_DFL)


@contextmanager
def deferred_signals() -> Iterator[None]:
    """Block termination signals for the duration of the block.

    Signals that arrive meanwhile stay pending and are delivered as soon as
    the block exits.
    """
    previous = signal.pthread_sigmask(signal.SIG_BLOCK, TERMINATION_SIGNALS)
    try:
        yield
    finally:
        signal.pthread_sigmask(signal.SIG_SETMASK, previous)
