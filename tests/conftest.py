"""Shared fixtures for graph test server tests."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from pathlib import Path

import pytest

from graph_test_server import LocalTestServer

TEST_RESOURCES = Path(__file__).resolve().parent / "resources"


def web_server_threads() -> list[threading.Thread]:
    """Listener threads currently alive in this process."""
    return [t for t in threading.enumerate() if t.name.startswith("web-server-")]


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def running_server() -> Iterator[LocalTestServer]:
    """One server per test module, bound to an ephemeral port."""
    server = LocalTestServer("127.0.0.1", 0)
    server.start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture()
def graph_server(running_server: LocalTestServer) -> LocalTestServer:
    """The module's server, emptied before each test."""
    running_server.reset_data()
    return running_server


@pytest.fixture()
def local_server() -> Iterator[LocalTestServer]:
    """A fresh, not yet started server that is always stopped afterwards."""
    server = LocalTestServer("127.0.0.1", 0)
    try:
        yield server
    finally:
        server.stop()
