"""Process-wide cancellation: a one-shot token armed by SIGINT/SIGTERM."""

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

HANDLED_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class CancelToken:
    """Write-once, read-many cancellation flag.

    Arming is idempotent and permanent for the life of the token.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def arm(self) -> None:
        self._event.set()

    @property
    def armed(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until armed or `timeout` elapses. Returns True if armed."""
        return self._event.wait(timeout)


@contextmanager
def signal_scope(token: CancelToken) -> Iterator[CancelToken]:
    """
    Arm `token` on SIGINT/SIGTERM for the duration of the block.

    The handlers do nothing but arm the token. Previous handlers are
    restored on exit so repeated runs in one process (the MCP server)
    do not stack handlers.

    Python only allows signal handlers on the main thread; elsewhere the
    scope installs nothing and the token can still be armed directly.
    """
    if threading.current_thread() is not threading.main_thread():
        logger.debug("Not on the main thread; signal handlers not installed")
        yield token
        return

    def _arm(signum, frame):
        token.arm()

    previous = {}
    try:
        for sig in HANDLED_SIGNALS:
            previous[sig] = signal.signal(sig, _arm)
        yield token
    finally:
        for sig, handler in previous.items():
            # None means the handler was not installed from Python
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
