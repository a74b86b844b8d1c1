import argparse
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import AsyncExitStack, asynccontextmanager
from logging import INFO, basicConfig, getLogger
from pathlib import Path

from starlette.applications import Starlette

from graph_test_server.config import DEFAULT_MODULES
from graph_test_server.database import Database, DatabaseFactory, persistent_database_factory
from graph_test_server.healthcheck import DATABASE_LOCATION_KEY, StartupHealthCheck
from graph_test_server.modules import ServerModule
from graph_test_server.readiness import ReadinessGate, ReadinessObserver
from graph_test_server.utils.common import load_properties, read_server_env, resolve_properties
from graph_test_server.web_server import WebServer

logger = getLogger(__name__)

LOG_LEVEL_KEY = "graph.server.log_level"
DEFAULT_SERVER_PROPERTIES = "graph-server.properties"
STARTUP_TIMEOUT_SECONDS = 30.0


def configure_logging() -> None:
    basicConfig(level=INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


class GraphServer:
    """Builds the database and the web application, then runs them on a WebServer.

    The storage factory, health check and module list are all injectable;
    the defaults describe a persistent standalone server.
    """

    def __init__(
        self,
        properties: Mapping[str, str],
        web_server: WebServer,
        *,
        hostname: str,
        port: int,
        database_factory: DatabaseFactory = persistent_database_factory,
        health_check: StartupHealthCheck | None = None,
        modules: Iterable[type[ServerModule]] = DEFAULT_MODULES,
    ):
        self.properties = dict(properties)
        self.web_server = web_server
        self.hostname = hostname
        self.port = port
        self.database_factory = database_factory
        self.health_check = health_check if health_check is not None else StartupHealthCheck()
        self.module_classes = tuple(modules)
        self.modules: list[ServerModule] = []
        self.database: Database | None = None

    def start(self) -> None:
        """Run health checks, build the database and app, and start the web server.

        Returns once the web server thread is launched; readiness is reported
        to the web server's lifecycle listeners.
        """
        self.health_check.run(self.properties)
        location = self.properties.get(DATABASE_LOCATION_KEY) or None
        self.database = Database(self.database_factory(location, self.properties), location)
        try:
            self.modules = [module(self.database, self.properties) for module in self.module_classes]
            routes = [route for module in self.modules for route in module.routes()]
            app = Starlette(routes=routes, lifespan=self._lifespan)

            self.web_server.set_host(self.hostname)
            self.web_server.set_port(self.port)
            self.web_server.log_level = self.properties.get(LOG_LEVEL_KEY) or self.web_server.log_level
            self.web_server.set_app(app)
            logger.info(
                "Starting graph server on %s:%s with modules %s",
                self.hostname,
                self.port,
                [module.name for module in self.modules],
            )
            self.web_server.start()
        except Exception:
            self.database.shutdown()
            self.database = None
            self.modules = []
            raise

    def stop(self, timeout: float | None = None) -> None:
        try:
            self.web_server.stop(timeout)
        finally:
            if self.database is not None:
                self.database.shutdown()
            logger.info("Graph server on %s:%s stopped", self.hostname, self.port)

    @property
    def base_uri(self) -> str:
        return f"http://{self.hostname}:{self.web_server.bound_port}/"

    @asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            try:
                for module in self.modules:
                    await stack.enter_async_context(module.lifespan())
            except Exception as e:
                # uvicorn only exits on a failed lifespan; the listeners get the module's error.
                self.web_server.report_failure(e)
                raise
            yield


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Standalone graph server")
    parser.add_argument("--host", dest="host", default=None, help="Host name to bind")
    parser.add_argument("--port", dest="port", type=int, default=None, help="Port to listen on")
    parser.add_argument(
        "--properties",
        dest="properties",
        default=None,
        help="Path to a properties file (defaults to the bundled graph-server.properties)",
    )
    return parser.parse_args()


def serve(host: str, port: int, properties_path: Path | None) -> None:
    if properties_path is None:
        resource = resolve_properties(DEFAULT_SERVER_PROPERTIES)
    else:
        resource = resolve_properties(properties_path.name, properties_path.parent)
    properties = load_properties(resource)

    gate = ReadinessGate()
    web_server = WebServer(host, port)
    web_server.add_lifecycle_listener(ReadinessObserver(gate))
    server = GraphServer(properties, web_server, hostname=host, port=port)
    server.start()
    try:
        gate.wait(STARTUP_TIMEOUT_SECONDS)
        logger.info("Graph server available at %s", server.base_uri)
        web_server.join()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    finally:
        server.stop()


def main() -> None:
    configure_logging()
    args = parse_args()
    env_host, env_port, env_properties = read_server_env()

    host: str = args.host or env_host or "localhost"
    port_value = args.port if args.port is not None else env_port
    properties: str | None = args.properties or env_properties

    try:
        port = int(port_value) if port_value is not None else 7474
    except ValueError:
        raise SystemExit(f"GRAPH_SERVER_PORT must be an integer, got {port_value!r}") from None

    serve(host=host, port=port, properties_path=Path(properties) if properties else None)


if __name__ == "__main__":
    main()
