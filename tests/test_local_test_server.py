"""Lifecycle tests for LocalTestServer: start, stop, reset and failure paths."""

from __future__ import annotations

import asyncio
import socket
import time
from contextlib import asynccontextmanager
from dataclasses import replace

import pytest
import requests

from graph_test_server import (
    AlreadyRunning,
    ConfigurationMissing,
    LifecycleState,
    LocalTestServer,
    NotRunning,
    ResetFailed,
    StartupFailed,
    StartupTimedOut,
    impermanent_overrides,
)
from graph_test_server.cleaner import DatabaseCleaner
from graph_test_server.modules import RestApiModule, ServerModule
from graph_test_server.utils.error import HealthCheckFailed
from graph_test_server.web_server import WebServer
from tests.conftest import web_server_threads


class _SilentWebServer(WebServer):
    """Starts normally but never tells anyone it did."""

    def add_lifecycle_listener(self, listener) -> None:
        pass


class _FailingStopWebServer(WebServer):
    def stop(self, timeout: float | None = None) -> None:
        super().stop(timeout)
        raise RuntimeError("stop failed")


class _BrokenLifespanModule(ServerModule):
    name = "broken"

    def routes(self):
        return []

    @asynccontextmanager
    async def lifespan(self):
        raise KeyError("module could not start")
        yield


class _SlowStartModule(ServerModule):
    name = "slow-start"

    def routes(self):
        return []

    @asynccontextmanager
    async def lifespan(self):
        await asyncio.sleep(0.5)
        yield


class _SlowShutdownModule(ServerModule):
    name = "slow-shutdown"

    def routes(self):
        return []

    @asynccontextmanager
    async def lifespan(self):
        yield
        await asyncio.sleep(1.0)


class _AlwaysFailsRule:
    name = "always-fails"

    def execute(self, properties):
        return "nope"


def test_start_blocks_until_reachable(local_server):
    local_server.start()
    assert local_server.state is LifecycleState.RUNNING
    response = requests.get(local_server.base_uri + "db/data/", timeout=5)
    assert response.status_code == 200
    assert response.json()["node_count"] == 0


def test_ephemeral_port_is_reported(local_server):
    local_server.start()
    assert local_server.port != 0
    assert local_server.base_uri == f"http://127.0.0.1:{local_server.port}/"


def test_start_twice_raises_and_keeps_instance(local_server):
    local_server.start()
    database = local_server.database
    base_uri = local_server.base_uri
    with pytest.raises(AlreadyRunning):
        local_server.start()
    assert local_server.database is database
    assert local_server.base_uri == base_uri
    assert requests.get(base_uri + "db/data/", timeout=5).status_code == 200


def test_missing_properties_file_binds_nothing():
    before = len(web_server_threads())
    server = LocalTestServer("127.0.0.1", 0).with_properties_file("does-not-exist.properties")
    with pytest.raises(ConfigurationMissing):
        server.start()
    assert server.state is LifecycleState.STOPPED
    assert not server.is_running
    assert len(web_server_threads()) == before


def test_missing_properties_root_raises_configuration_missing(tmp_path):
    server = LocalTestServer("127.0.0.1", 0).with_properties_root(tmp_path / "nowhere")
    with pytest.raises(ConfigurationMissing):
        server.start()


def test_stop_clears_instance(local_server):
    local_server.start()
    local_server.stop()
    assert not local_server.is_running
    assert local_server.state is LifecycleState.STOPPED
    with pytest.raises(NotRunning):
        local_server.base_uri


def test_stop_without_start_is_a_no_op(local_server):
    local_server.stop()
    local_server.stop()
    assert local_server.state is LifecycleState.STOPPED


def test_stop_error_is_logged_not_raised(caplog):
    server = LocalTestServer("127.0.0.1", 0, web_server_factory=_FailingStopWebServer)
    server.start()
    with caplog.at_level("ERROR", logger="graph_test_server.local_test_server"):
        server.stop()
    assert not server.is_running
    assert "Error stopping server" in caplog.text


def test_restart_gives_fresh_empty_database(local_server):
    local_server.start()
    first = local_server.graph
    first.create_node({"name": "left over"})
    local_server.stop()

    local_server.start()
    assert local_server.graph is not first
    assert local_server.graph.node_count == 0


@pytest.mark.parametrize("count", [0, 1, 1000])
def test_reset_data_empties_backend(graph_server, count):
    graph = graph_server.graph
    nodes = [graph.create_node({"i": i}) for i in range(count)]
    if len(nodes) > 1:
        graph.create_relationship(nodes[0].id, nodes[-1].id, "LINKS")

    graph_server.reset_data()

    assert graph.node_count == 0
    assert graph.relationship_count == 0
    root = requests.get(graph_server.base_uri + "db/data/", timeout=5).json()
    assert root["node_count"] == 0
    assert root["relationship_count"] == 0


def test_reset_failure_propagates(graph_server, monkeypatch):
    def broken_clean(self):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(DatabaseCleaner, "clean_db", broken_clean)
    with pytest.raises(ResetFailed) as excinfo:
        graph_server.reset_data()
    assert isinstance(excinfo.value.cause, RuntimeError)


def test_reset_requires_running_server(local_server):
    with pytest.raises(NotRunning):
        local_server.reset_data()


def test_port_in_use_fails_and_allows_retry():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]

        server = LocalTestServer("127.0.0.1", port)
        with pytest.raises(StartupFailed) as excinfo:
            server.start()
        assert isinstance(excinfo.value.cause, OSError)
        assert server.state is LifecycleState.STOPPED
        assert not server.is_running

    try:
        server.start()
        assert server.port == port
    finally:
        server.stop()


def test_module_startup_failure_is_reported(local_server):
    local_server.with_modules(RestApiModule, _BrokenLifespanModule)
    with pytest.raises(StartupFailed) as excinfo:
        local_server.start()
    assert isinstance(excinfo.value.cause, KeyError)
    assert excinfo.value.cause.args == ("module could not start",)
    assert local_server.state is LifecycleState.STOPPED
    assert not local_server.is_running


def test_slow_stop_is_bounded_and_logged(caplog):
    server = LocalTestServer("127.0.0.1", 0, stop_timeout=0.2).with_modules(
        RestApiModule, _SlowShutdownModule
    )
    server.start()
    began = time.monotonic()
    with caplog.at_level("ERROR", logger="graph_test_server.local_test_server"):
        server.stop()
    try:
        assert time.monotonic() - began < 1.0
        assert not server.is_running
        assert server.state is LifecycleState.STOPPED
        assert "did not stop within 0.2s" in caplog.text
    finally:
        for thread in web_server_threads():
            thread.join(5)


def test_health_check_failure_is_wrapped():
    def strict_overrides(configuration):
        return replace(impermanent_overrides(configuration), health_check_rules=(_AlwaysFailsRule(),))

    before = len(web_server_threads())
    server = LocalTestServer("127.0.0.1", 0, overrides=strict_overrides)
    with pytest.raises(StartupFailed) as excinfo:
        server.start()
    assert isinstance(excinfo.value.cause, HealthCheckFailed)
    assert len(web_server_threads()) == before


def test_strict_readiness_timeout_raises():
    server = LocalTestServer(
        "127.0.0.1", 0, web_server_factory=_SilentWebServer, readiness_timeout=0.2
    )
    with pytest.raises(StartupTimedOut):
        server.start()
    assert server.state is LifecycleState.STOPPED
    assert not server.is_running


def test_lenient_readiness_timeout_proceeds():
    server = LocalTestServer(
        "127.0.0.1",
        0,
        web_server_factory=_SilentWebServer,
        readiness_timeout=0.2,
        strict_readiness=False,
    )
    try:
        server.start()
        assert server.state is LifecycleState.RUNNING
    finally:
        server.stop()


def test_lenient_start_reports_port_once_bound():
    server = LocalTestServer(
        "127.0.0.1", 0, readiness_timeout=0.1, strict_readiness=False
    ).with_modules(RestApiModule, _SlowStartModule)
    try:
        server.start()
        deadline = time.monotonic() + 5
        while server.port == 0 and time.monotonic() < deadline:
            time.sleep(0.05)
        assert server.port != 0
        assert server.base_uri == f"http://127.0.0.1:{server.port}/"
        assert requests.get(server.base_uri + "db/data/", timeout=5).status_code == 200
    finally:
        server.stop()


def test_reconfiguring_while_running_is_refused(local_server):
    local_server.start()
    with pytest.raises(AlreadyRunning):
        local_server.with_properties_file("other.properties")


def test_module_set_can_be_swapped(local_server):
    local_server.with_modules("rest_api")
    local_server.start()
    base = local_server.base_uri
    assert requests.get(base + "db/data/", timeout=5).status_code == 200
    assert requests.post(base + "mcp/", json={}, timeout=5).status_code == 404


def test_independent_servers_coexist():
    with LocalTestServer("127.0.0.1", 0) as first, LocalTestServer("127.0.0.1", 0) as second:
        first.graph.create_node()
        assert first.port != second.port
        assert second.graph.node_count == 0
    assert not first.is_running
    assert not second.is_running


def test_default_scenario_on_localhost_7473():
    server = LocalTestServer("localhost", 7473)
    began = time.monotonic()
    server.start()
    try:
        assert time.monotonic() - began < 5
        assert server.hostname == "localhost"
        assert server.port == 7473
        assert server.base_uri == "http://localhost:7473/"
        assert requests.get(server.base_uri + "db/data/", timeout=5).status_code == 200
        server.graph.create_node({"name": "first run"})

        server.stop()
        server.start()
        assert server.graph.node_count == 0
    finally:
        server.stop()
