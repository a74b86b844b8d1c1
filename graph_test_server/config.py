from dataclasses import dataclass, replace
from pathlib import Path

from graph_test_server.modules import (
    MODULE_REGISTRY,
    McpModule,
    RestApiModule,
    ServerModule,
    ThirdPartyModule,
)
from graph_test_server.utils.common import DEFAULT_PROPERTIES_FILE, DEFAULT_PROPERTIES_ROOT

DEFAULT_HOSTNAME = "localhost"
DEFAULT_PORT = 7473

# Primary API first, then the extension surfaces.
DEFAULT_MODULES: tuple[type[ServerModule], ...] = (RestApiModule, ThirdPartyModule, McpModule)

ModuleId = type[ServerModule] | str


def resolve_modules(modules: tuple[ModuleId, ...]) -> tuple[type[ServerModule], ...]:
    """Map module identifiers (classes or registry names) to module classes, keeping order."""
    resolved: list[type[ServerModule]] = []
    for module in modules:
        if isinstance(module, str):
            try:
                module = MODULE_REGISTRY[module]
            except KeyError:
                raise ValueError(
                    f"Unknown module '{module}', expected one of {sorted(MODULE_REGISTRY)}"
                ) from None
        elif not (isinstance(module, type) and issubclass(module, ServerModule)):
            raise TypeError(f"{module!r} is not a ServerModule class")
        if module in resolved:
            raise ValueError(f"Module {module.__name__} is listed twice")
        resolved.append(module)
    return tuple(resolved)


@dataclass(frozen=True)
class Configuration:
    """Everything needed to start one instance. Rebuild with the ``with_*`` methods."""

    hostname: str = DEFAULT_HOSTNAME
    port: int = DEFAULT_PORT
    properties_file: str = DEFAULT_PROPERTIES_FILE
    properties_root: str | Path = DEFAULT_PROPERTIES_ROOT
    modules: tuple[ModuleId, ...] = DEFAULT_MODULES

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Port {self.port} is out of range")
        object.__setattr__(self, "modules", tuple(self.modules))

    def with_hostname(self, hostname: str) -> "Configuration":
        return replace(self, hostname=hostname)

    def with_port(self, port: int) -> "Configuration":
        return replace(self, port=port)

    def with_properties_file(self, properties_file: str) -> "Configuration":
        return replace(self, properties_file=properties_file)

    def with_properties_root(self, properties_root: str | Path) -> "Configuration":
        return replace(self, properties_root=properties_root)

    def with_modules(self, *modules: ModuleId) -> "Configuration":
        return replace(self, modules=tuple(modules))

    def module_classes(self) -> tuple[type[ServerModule], ...]:
        return resolve_modules(self.modules)
