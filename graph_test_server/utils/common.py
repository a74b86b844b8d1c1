"""Common helpers: properties resource lookup and environment configuration."""

import io
import os
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path

from dotenv import dotenv_values, load_dotenv

from graph_test_server.utils.error import ConfigurationMissing

DEFAULT_PROPERTIES_ROOT = "graph_test_server.resources"
DEFAULT_PROPERTIES_FILE = "test-db.properties"


def resolve_properties(name: str, root: str | Path = DEFAULT_PROPERTIES_ROOT) -> Traversable:
    """Locate the properties resource ``name`` under ``root``.

    ``root`` is either a directory (a ``Path``, or a string naming an existing
    directory) or an importable package name, searched with
    ``importlib.resources``. Raises ConfigurationMissing when the resource
    does not exist; nothing else is touched.
    """
    relative = name.lstrip("/")
    if not relative:
        raise ConfigurationMissing("Properties file name is empty")

    if isinstance(root, Path):
        base: Traversable = root
    elif Path(root).is_dir():
        base = Path(root)
    else:
        try:
            base = resources.files(root)
        except ModuleNotFoundError as e:
            raise ConfigurationMissing(f"Properties lookup root {root!r} does not exist") from e

    candidate = base.joinpath(*relative.split("/"))
    if not candidate.is_file():
        raise ConfigurationMissing(f"Could not resolve properties file {name} under {root}")
    return candidate


def load_properties(resource: Traversable) -> dict[str, str]:
    """Parse a ``key=value`` properties resource. Keys without a value are dropped."""
    text = resource.read_text(encoding="utf-8")
    values = dotenv_values(stream=io.StringIO(text))
    return {key: value for key, value in values.items() if value is not None}


def read_server_env() -> tuple[str | None, str | None, str | None]:
    """Read GRAPH_SERVER_HOST, GRAPH_SERVER_PORT and GRAPH_SERVER_PROPERTIES.

    Values missing from the process environment are looked up in .env.
    Missing values come back as None.
    """
    keys = ("GRAPH_SERVER_HOST", "GRAPH_SERVER_PORT", "GRAPH_SERVER_PROPERTIES")
    if not all(os.environ.get(key, "").strip() for key in keys):
        load_dotenv()
    host, port, properties = (os.environ.get(key, "").strip() or None for key in keys)
    return host, port, properties
