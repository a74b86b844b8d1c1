"""Exceptions raised by the graph test server and its collaborators."""


class GraphServerError(Exception):
    """Base class for every error raised by this package."""


class AlreadyRunning(GraphServerError):
    """start() was called while an instance is still alive."""


class NotRunning(GraphServerError):
    """An operation that needs a running instance was used while stopped."""


class ConfigurationMissing(GraphServerError):
    """The properties resource could not be resolved."""


class StartupFailed(GraphServerError):
    """The service failed while starting. ``cause`` holds the underlying error."""

    def __init__(self, cause: BaseException, message: str | None = None):
        super().__init__(message or f"Server failed to start: {cause}")
        self.cause = cause


class StartupTimedOut(GraphServerError):
    """The listener did not report readiness within the allotted time."""

    def __init__(self, timeout: float):
        super().__init__(f"Server did not report readiness within {timeout}s")
        self.timeout = timeout


class ShutdownError(GraphServerError):
    """Stopping the service failed. Logged, never raised to callers of stop()."""


class ResetFailed(GraphServerError):
    """Clearing the backend failed. ``cause`` holds the underlying error."""

    def __init__(self, cause: BaseException):
        super().__init__(f"Failed to reset database: {cause}")
        self.cause = cause


class HealthCheckFailed(GraphServerError):
    """A pre-start health check rule did not pass."""

    def __init__(self, rule_name: str, message: str):
        super().__init__(f"Health check '{rule_name}' failed: {message}")
        self.rule_name = rule_name


class NodeNotFound(GraphServerError, KeyError):
    def __init__(self, node_id: int):
        super().__init__(f"Node {node_id} not found")
        self.node_id = node_id

    def __str__(self) -> str:
        return self.args[0]


class RelationshipNotFound(GraphServerError, KeyError):
    def __init__(self, relationship_id: int):
        super().__init__(f"Relationship {relationship_id} not found")
        self.relationship_id = relationship_id

    def __str__(self) -> str:
        return self.args[0]


class ConstraintViolation(GraphServerError):
    """A write would leave the graph inconsistent, e.g. a dangling relationship."""
