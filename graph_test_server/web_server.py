"""Network listener: a uvicorn server running on a background thread.

Lifecycle listeners attached with ``add_lifecycle_listener`` receive
``starting``, ``started``, ``failure``, ``stopping`` and ``stopped`` events
from the listener thread. ``start()`` returns as soon as the thread is
launched; callers that need to know when requests can be served wait for the
``started`` event.
"""

import threading
from logging import getLogger
from typing import Any, Protocol

import uvicorn
from starlette.types import ASGIApp

from graph_test_server.utils.error import ShutdownError

logger = getLogger(__name__)

GRACEFUL_SHUTDOWN_SECONDS = 1


class LifecycleListener(Protocol):
    def starting(self, server: "WebServer") -> None: ...

    def started(self, server: "WebServer") -> None: ...

    def failure(self, server: "WebServer", cause: BaseException) -> None: ...

    def stopping(self, server: "WebServer") -> None: ...

    def stopped(self, server: "WebServer") -> None: ...


class _ObservedServer(uvicorn.Server):
    """uvicorn server that reports its startup and shutdown to a WebServer."""

    def __init__(self, config: uvicorn.Config, web_server: "WebServer"):
        super().__init__(config)
        self._web_server = web_server

    async def startup(self, sockets: Any = None) -> None:
        self._web_server._notify("starting")
        try:
            await super().startup(sockets=sockets)
        except SystemExit as e:
            # uvicorn calls sys.exit() on a bind error or a failed lifespan startup.
            cause = e.__context__ or RuntimeError(f"Web server startup exited with code {e.code}")
            self._web_server.report_failure(cause)
            raise
        if self.started:
            self._web_server._notify("started")

    async def shutdown(self, sockets: Any = None) -> None:
        self._web_server._notify("stopping")
        await super().shutdown(sockets=sockets)
        self._web_server._notify("stopped")


class WebServer:
    def __init__(self, host: str = "localhost", port: int = 7473, log_level: str = "warning"):
        self.host = host
        self.port = port
        self.log_level = log_level
        self.app: ASGIApp | None = None
        self._listeners: list[LifecycleListener] = []
        self._server: _ObservedServer | None = None
        self._thread: threading.Thread | None = None
        self._failed = False

    def set_port(self, port: int) -> None:
        self.port = port

    def set_host(self, host: str) -> None:
        self.host = host

    def set_app(self, app: ASGIApp) -> None:
        self.app = app

    def add_lifecycle_listener(self, listener: LifecycleListener) -> None:
        self._listeners.append(listener)

    @property
    def is_started(self) -> bool:
        return self._server is not None and self._server.started and not self._server.should_exit

    @property
    def bound_port(self) -> int:
        """The port actually listened on; differs from ``port`` when port 0 was requested."""
        if self._server is not None and self._server.started and self._server.servers:
            sockets = self._server.servers[0].sockets
            if sockets:
                return sockets[0].getsockname()[1]
        return self.port

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Web server has already been started")
        if self.app is None:
            raise RuntimeError("No application was set on the web server")
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            lifespan="on",
            log_config=None,
            log_level=self.log_level,
            access_log=False,
            timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SECONDS,
        )
        self._server = _ObservedServer(config, self)
        self._thread = threading.Thread(
            target=self._run,
            args=(self._server,),
            name=f"web-server-{self.host}:{self.port}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Ask the server to exit and wait for its thread. No-op if never started."""
        if self._thread is None or self._server is None:
            return
        self._server.should_exit = True
        self._thread.join(timeout)
        if self._thread.is_alive():
            self._server.force_exit = True
            raise ShutdownError(f"Web server thread did not stop within {timeout}s")
        self._thread = None

    def join(self, timeout: float | None = None) -> None:
        """Block until the listener thread ends."""
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self, server: _ObservedServer) -> None:
        try:
            server.run()
        except SystemExit:
            logger.debug("Web server on %s:%s exited during startup", self.host, self.port)
        except Exception as e:  # noqa: BLE001
            self.report_failure(e)
        finally:
            if not server.started and not self._failed:
                self.report_failure(RuntimeError("Web server exited before it started"))

    def report_failure(self, cause: BaseException) -> None:
        """Send ``failure`` to the listeners. Only the first report is delivered."""
        if self._failed:
            return
        self._failed = True
        self._notify("failure", cause)

    def _notify(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, event)(self, *args)
            except Exception:
                logger.exception("Lifecycle listener %r failed handling '%s'", listener, event)
