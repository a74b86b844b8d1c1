"""Mount third-party ASGI applications next to the built-in API.

``graph.server.thirdparty_mounts`` lists entries of the form
``package.module:factory=/mount/path`` separated by commas. Each factory is
called with the server's ``Database`` and must return an ASGI application.
"""

from importlib import import_module
from logging import getLogger
from typing import Any

from starlette.routing import BaseRoute, Mount

from graph_test_server.modules.base import ServerModule, normalize_mount_path

logger = getLogger(__name__)

THIRD_PARTY_MOUNTS_KEY = "graph.server.thirdparty_mounts"


def parse_mounts(value: str) -> list[tuple[str, str]]:
    """Split the mounts property into (target, path) pairs."""
    mounts: list[tuple[str, str]] = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        target, sep, path = entry.partition("=")
        if not sep or ":" not in target or not path.strip():
            raise ValueError(
                f"Invalid third-party mount '{entry}', expected 'package.module:factory=/path'"
            )
        mounts.append((target.strip(), normalize_mount_path(path)))
    return mounts


def load_factory(target: str) -> Any:
    module_name, _, attribute = target.partition(":")
    module = import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise ImportError(f"{module_name} has no attribute {attribute!r}") from e


class ThirdPartyModule(ServerModule):
    name = "third_party"

    def routes(self) -> list[BaseRoute]:
        routes: list[BaseRoute] = []
        for target, path in parse_mounts(self.properties.get(THIRD_PARTY_MOUNTS_KEY, "")):
            app = load_factory(target)(self.database)
            logger.info("Mounting third-party application %s at %s", target, path)
            routes.append(Mount(path, app=app))
        return routes
