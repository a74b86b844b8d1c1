from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager, nullcontext

from starlette.routing import BaseRoute

from graph_test_server.database import Database


class ServerModule:
    """A capability surface the server exposes.

    Modules are identified by class. The server builds a new module object
    for every start, so per-start state such as a session manager is never
    shared between runs.
    """

    name = ""

    def __init__(self, database: Database, properties: Mapping[str, str]):
        self.database = database
        self.properties = properties

    def routes(self) -> list[BaseRoute]:
        raise NotImplementedError

    def lifespan(self) -> AbstractAsyncContextManager[None]:
        """Entered when the app starts serving, exited when it stops."""
        return nullcontext()


def normalize_mount_path(path: str) -> str:
    path = "/" + path.strip().strip("/")
    if path == "/":
        raise ValueError("A module cannot be mounted at the root path")
    return path
