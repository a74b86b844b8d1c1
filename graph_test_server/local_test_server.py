"""In-process graph server for integration tests.

``LocalTestServer`` boots a ``GraphServer`` on an in-memory database, blocks
until the web server reports that it is accepting requests, and tears it
down again. Typical use::

    server = LocalTestServer("localhost", 7473)
    server.start()
    requests.get(server.base_uri + "db/data/")
    server.reset_data()
    server.stop()
"""

import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from logging import getLogger
from pathlib import Path

from graph_test_server.cleaner import DatabaseCleaner
from graph_test_server.config import DEFAULT_HOSTNAME, DEFAULT_PORT, Configuration, ModuleId
from graph_test_server.database import (
    Database,
    DatabaseFactory,
    GraphDatabase,
    ImpermanentGraphDatabase,
)
from graph_test_server.healthcheck import HealthCheckRule, StartupHealthCheck
from graph_test_server.modules import ServerModule
from graph_test_server.readiness import ReadinessGate, ReadinessObserver
from graph_test_server.server import GraphServer
from graph_test_server.utils.common import load_properties, resolve_properties
from graph_test_server.utils.error import (
    AlreadyRunning,
    NotRunning,
    ResetFailed,
    ShutdownError,
    StartupFailed,
)
from graph_test_server.web_server import WebServer

logger = getLogger(__name__)

DEFAULT_READINESS_TIMEOUT = 5.0
DEFAULT_STOP_TIMEOUT = 10.0


class LifecycleState(enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    FAILED = "failed"


@dataclass(frozen=True)
class ServiceOverrides:
    """Replacements for the defaults GraphServer would otherwise use."""

    database_factory: DatabaseFactory
    health_check_rules: tuple[HealthCheckRule, ...]
    modules: tuple[type[ServerModule], ...]


def impermanent_database_factory(
    store_dir: str | None, properties: Mapping[str, str]
) -> GraphDatabase:
    # store_dir is ignored; every call yields a new, empty store.
    return ImpermanentGraphDatabase()


def impermanent_overrides(configuration: Configuration) -> ServiceOverrides:
    """In-memory storage, no health checks and the configured modules."""
    return ServiceOverrides(
        database_factory=impermanent_database_factory,
        health_check_rules=(),
        modules=configuration.module_classes(),
    )


@dataclass
class Instance:
    hostname: str
    state: LifecycleState
    database: Database
    server: GraphServer

    @property
    def port(self) -> int:
        return self.server.web_server.bound_port


class LocalTestServer:
    def __init__(
        self,
        hostname: str = DEFAULT_HOSTNAME,
        port: int = DEFAULT_PORT,
        *,
        configuration: Configuration | None = None,
        overrides: Callable[[Configuration], ServiceOverrides] = impermanent_overrides,
        web_server_factory: Callable[[str, int], WebServer] = WebServer,
        readiness_timeout: float = DEFAULT_READINESS_TIMEOUT,
        strict_readiness: bool = True,
        stop_timeout: float | None = DEFAULT_STOP_TIMEOUT,
    ):
        self._configuration = configuration or Configuration(hostname=hostname, port=port)
        self.overrides = overrides
        self.web_server_factory = web_server_factory
        self.readiness_timeout = readiness_timeout
        self.strict_readiness = strict_readiness
        self.stop_timeout = stop_timeout
        self._state = LifecycleState.STOPPED
        self._instance: Instance | None = None

    def __enter__(self) -> "LocalTestServer":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # -- lifecycle -------------------------------------------------------

    def start(self) -> None:
        if self._instance is not None:
            raise AlreadyRunning(f"Server already running at {self.base_uri}")

        configuration = self._configuration
        resource = resolve_properties(configuration.properties_file, configuration.properties_root)
        properties = load_properties(resource)

        self._state = LifecycleState.STARTING
        server: GraphServer | None = None
        try:
            overrides = self.overrides(configuration)
            gate = ReadinessGate(strict=self.strict_readiness)
            web_server = self.web_server_factory(configuration.hostname, configuration.port)
            web_server.add_lifecycle_listener(ReadinessObserver(gate))
            server = GraphServer(
                properties,
                web_server,
                hostname=configuration.hostname,
                port=configuration.port,
                database_factory=overrides.database_factory,
                health_check=StartupHealthCheck(overrides.health_check_rules),
                modules=overrides.modules,
            )
            try:
                server.start()
            except Exception as e:
                raise StartupFailed(e) from e
            gate.wait(self.readiness_timeout)
        except BaseException:
            self._state = LifecycleState.FAILED
            if server is not None:
                self._teardown(server)
            self._state = LifecycleState.STOPPED
            raise

        self._instance = Instance(
            hostname=configuration.hostname,
            state=LifecycleState.RUNNING,
            database=server.database,
            server=server,
        )
        self._state = LifecycleState.RUNNING
        logger.info("Local test server running at %s", self.base_uri)

    def stop(self) -> None:
        """Stop the running instance. Safe to call when nothing is running."""
        instance = self._instance
        if instance is None:
            return
        try:
            self._teardown(instance.server)
        finally:
            instance.state = LifecycleState.STOPPED
            self._instance = None
            self._state = LifecycleState.STOPPED

    def reset_data(self) -> dict[str, int]:
        """Delete every node and relationship of the running instance."""
        graph = self.graph
        try:
            return DatabaseCleaner(graph).clean_db()
        except Exception as e:
            raise ResetFailed(e) from e

    def _teardown(self, server: GraphServer) -> None:
        try:
            server.stop(self.stop_timeout)
        except Exception as e:  # noqa: BLE001
            error = e if isinstance(e, ShutdownError) else ShutdownError(str(e))
            logger.error("Error stopping server: %s", error, exc_info=e)

    # -- reconfiguration -------------------------------------------------

    def with_properties_file(self, properties_file: str) -> "LocalTestServer":
        self._reconfigure(self._configuration.with_properties_file(properties_file))
        return self

    def with_properties_root(self, properties_root: str | Path) -> "LocalTestServer":
        self._reconfigure(self._configuration.with_properties_root(properties_root))
        return self

    def with_modules(self, *modules: ModuleId) -> "LocalTestServer":
        self._reconfigure(self._configuration.with_modules(*modules))
        return self

    def _reconfigure(self, configuration: Configuration) -> None:
        if self._instance is not None:
            raise AlreadyRunning("Cannot change the configuration of a running server")
        self._configuration = configuration

    # -- accessors -------------------------------------------------------

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._instance is not None

    @property
    def hostname(self) -> str:
        return self._configuration.hostname

    @property
    def port(self) -> int:
        if self._instance is not None:
            return self._instance.port
        return self._configuration.port

    @property
    def base_uri(self) -> str:
        return self._running().server.base_uri

    @property
    def database(self) -> Database:
        return self._running().database

    @property
    def graph(self) -> GraphDatabase:
        return self.database.graph

    def _running(self) -> Instance:
        if self._instance is None:
            raise NotRunning("Local test server is not running")
        return self._instance
