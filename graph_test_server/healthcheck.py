"""Pre-start health checks run by the server before it builds its database."""

import os
from collections.abc import Iterable, Mapping
from logging import getLogger
from pathlib import Path
from typing import Protocol

from graph_test_server.utils.error import HealthCheckFailed

logger = getLogger(__name__)

DATABASE_LOCATION_KEY = "graph.server.database.location"


class HealthCheckRule(Protocol):
    name: str

    def execute(self, properties: Mapping[str, str]) -> str | None:
        """Return None when healthy, otherwise a failure message."""
        ...


class DatabaseLocationConfiguredRule:
    name = "database-location-configured"

    def execute(self, properties: Mapping[str, str]) -> str | None:
        if not properties.get(DATABASE_LOCATION_KEY, "").strip():
            return f"{DATABASE_LOCATION_KEY} is not set"
        return None


class StoreDirectoryWritableRule:
    name = "store-directory-writable"

    def execute(self, properties: Mapping[str, str]) -> str | None:
        location = properties.get(DATABASE_LOCATION_KEY, "").strip()
        if not location:
            return None
        # The directory may not exist yet; its nearest existing parent must be writable.
        path = Path(location).resolve()
        while not path.exists() and path != path.parent:
            path = path.parent
        if not os.access(path, os.W_OK):
            return f"{path} is not writable"
        return None


DEFAULT_RULES: tuple[HealthCheckRule, ...] = (
    DatabaseLocationConfiguredRule(),
    StoreDirectoryWritableRule(),
)


class StartupHealthCheck:
    def __init__(self, rules: Iterable[HealthCheckRule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def run(self, properties: Mapping[str, str]) -> None:
        for rule in self.rules:
            failure = rule.execute(properties)
            if failure is not None:
                logger.error("Startup health check %s failed: %s", rule.name, failure)
                raise HealthCheckFailed(rule.name, failure)
        logger.debug("%d startup health checks passed", len(self.rules))
