"""One-shot readiness signal handed from the listener thread to the caller.

A ``ReadinessGate`` belongs to exactly one start attempt. It is a latch with
memory: a signal sent before anyone waits is still seen by the waiter, and
only the first signal counts.
"""

import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from logging import getLogger

from graph_test_server.utils.error import StartupFailed, StartupTimedOut

logger = getLogger(__name__)


class ReadinessGate:
    """Blocks ``wait()`` until ``signal_started()`` or ``signal_failed()``.

    With ``strict=True`` a wait that times out raises StartupTimedOut. With
    ``strict=False`` it logs a warning and returns False, treating the
    service as probably ready.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict
        self._future: Future[None] = Future()
        self._lock = threading.Lock()

    @property
    def is_signaled(self) -> bool:
        return self._future.done()

    def signal_started(self) -> bool:
        """Mark the start attempt successful. Returns False if already signaled."""
        with self._lock:
            if self._future.done():
                logger.debug("Ignoring started signal, gate already signaled")
                return False
            self._future.set_result(None)
            return True

    def signal_failed(self, cause: BaseException) -> bool:
        """Mark the start attempt failed. Returns False if already signaled."""
        with self._lock:
            if self._future.done():
                logger.debug("Ignoring failure signal (%s), gate already signaled", cause)
                return False
            self._future.set_exception(cause)
            return True

    def wait(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds.

        Returns True once started was signaled, raises StartupFailed after a
        failure signal, and on timeout either raises StartupTimedOut (strict)
        or returns False.
        """
        try:
            error = self._future.exception(timeout=timeout)
        except FutureTimeoutError:
            if self.strict:
                raise StartupTimedOut(timeout) from None
            logger.warning("No readiness signal after %ss, assuming the server is up", timeout)
            return False
        if error is not None:
            raise StartupFailed(error) from error
        return True


class ReadinessObserver:
    """Lifecycle listener that forwards a web server's startup outcome to a gate."""

    def __init__(self, gate: ReadinessGate):
        self.gate = gate

    def starting(self, server) -> None:
        logger.debug("Web server starting on %s:%s", server.host, server.port)

    def started(self, server) -> None:
        logger.debug("Web server started on %s:%s", server.host, server.bound_port)
        self.gate.signal_started()

    def failure(self, server, cause: BaseException) -> None:
        self.gate.signal_failed(cause)
        raise StartupFailed(cause) from cause

    def stopping(self, server) -> None:
        logger.debug("Web server stopping on %s:%s", server.host, server.port)

    def stopped(self, server) -> None:
        logger.debug("Web server stopped on %s:%s", server.host, server.port)
