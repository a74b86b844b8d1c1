from graph_test_server.config import Configuration
from graph_test_server.local_test_server import (
    LifecycleState,
    LocalTestServer,
    ServiceOverrides,
    impermanent_overrides,
)
from graph_test_server.readiness import ReadinessGate
from graph_test_server.utils.error import (
    AlreadyRunning,
    ConfigurationMissing,
    NotRunning,
    ResetFailed,
    ShutdownError,
    StartupFailed,
    StartupTimedOut,
)

__all__ = [
    "AlreadyRunning",
    "Configuration",
    "ConfigurationMissing",
    "LifecycleState",
    "LocalTestServer",
    "NotRunning",
    "ReadinessGate",
    "ResetFailed",
    "ServiceOverrides",
    "ShutdownError",
    "StartupFailed",
    "StartupTimedOut",
    "impermanent_overrides",
]
