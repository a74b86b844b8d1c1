"""Graph backend and cleaner tests."""

from __future__ import annotations

import json

import pytest

from graph_test_server.cleaner import DatabaseCleaner
from graph_test_server.database import (
    STORE_FILE_NAME,
    GraphDatabase,
    ImpermanentGraphDatabase,
    persistent_database_factory,
)
from graph_test_server.utils.error import (
    ConstraintViolation,
    NodeNotFound,
    RelationshipNotFound,
)


@pytest.fixture()
def graph() -> ImpermanentGraphDatabase:
    return ImpermanentGraphDatabase()


def test_create_and_get_node(graph):
    node = graph.create_node({"name": "Alice", "age": 42})
    assert graph.get_node(node.id).properties == {"name": "Alice", "age": 42}
    assert graph.node_count == 1


def test_node_ids_are_not_reused(graph):
    first = graph.create_node()
    graph.delete_node(first.id)
    second = graph.create_node()
    assert second.id != first.id


def test_missing_node_raises(graph):
    with pytest.raises(NodeNotFound):
        graph.get_node(99)


def test_set_node_properties_replaces_all(graph):
    node = graph.create_node({"a": 1, "b": 2})
    graph.set_node_properties(node.id, {"c": 3})
    assert graph.get_node(node.id).properties == {"c": 3}


def test_null_property_values_are_rejected(graph):
    with pytest.raises(ValueError):
        graph.create_node({"name": None})


def test_delete_node_with_relationships_is_refused(graph):
    a = graph.create_node()
    b = graph.create_node()
    rel = graph.create_relationship(a.id, b.id, "KNOWS")
    with pytest.raises(ConstraintViolation):
        graph.delete_node(a.id)
    graph.delete_relationship(rel.id)
    graph.delete_node(a.id)
    assert graph.node_count == 1


def test_relationship_requires_existing_nodes(graph):
    a = graph.create_node()
    with pytest.raises(NodeNotFound):
        graph.create_relationship(a.id, 42, "KNOWS")
    with pytest.raises(ValueError):
        graph.create_relationship(a.id, a.id, "")


def test_relationships_by_direction_and_type(graph):
    a, b, c = graph.create_node(), graph.create_node(), graph.create_node()
    knows = graph.create_relationship(a.id, b.id, "KNOWS")
    likes = graph.create_relationship(c.id, a.id, "LIKES")

    assert {r.id for r in graph.relationships_of(a.id)} == {knows.id, likes.id}
    assert [r.id for r in graph.relationships_of(a.id, "out")] == [knows.id]
    assert [r.id for r in graph.relationships_of(a.id, "in")] == [likes.id]
    assert [r.id for r in graph.relationships_of(a.id, "all", ["LIKES"])] == [likes.id]
    assert graph.relationship_types() == ["KNOWS", "LIKES"]

    with pytest.raises(ValueError):
        graph.relationships_of(a.id, "sideways")


def test_missing_relationship_raises(graph):
    with pytest.raises(RelationshipNotFound):
        graph.get_relationship(7)


def test_shutdown_database_refuses_writes(graph):
    graph.shutdown()
    with pytest.raises(ConstraintViolation):
        graph.create_node()


def test_persistent_database_survives_restart(tmp_path):
    store = tmp_path / "graph.db"
    graph = GraphDatabase(store)
    a = graph.create_node({"name": "a"})
    b = graph.create_node({"name": "b"})
    graph.create_relationship(a.id, b.id, "KNOWS", {"since": 2011})
    graph.shutdown()

    assert json.loads((store / STORE_FILE_NAME).read_text())["nodes"]

    reopened = GraphDatabase(store)
    assert reopened.node_count == 2
    assert reopened.relationship_count == 1
    assert reopened.get_node(b.id).properties == {"name": "b"}
    assert reopened.create_node().id == 2


def test_impermanent_database_never_writes(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    graph = ImpermanentGraphDatabase()
    graph.create_node()
    graph.shutdown()
    assert not graph.is_persistent
    assert list(tmp_path.iterdir()) == []


def test_persistent_factory_requires_location():
    with pytest.raises(ValueError):
        persistent_database_factory(None, {})


@pytest.mark.parametrize("count", [0, 1, 1000])
def test_cleaner_removes_everything(graph, count):
    nodes = [graph.create_node({"i": i}) for i in range(count)]
    for left, right in zip(nodes, nodes[1:]):
        graph.create_relationship(left.id, right.id, "NEXT")

    result = DatabaseCleaner(graph).clean_db()

    assert result == {"nodes": count, "relationships": max(count - 1, 0)}
    assert graph.node_count == 0
    assert graph.relationship_count == 0
    # Still usable afterwards.
    graph.create_node()
    assert graph.node_count == 1
