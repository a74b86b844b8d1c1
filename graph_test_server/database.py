"""Graph storage backends.

``GraphDatabase`` keeps nodes and relationships in memory behind a re-entrant
lock, so HTTP handlers running on the listener thread and test code running
on the caller's thread can use it at the same time. When given a store
directory it loads ``graph.json`` from there at construction and writes it
back on ``shutdown()``; that is the persistent backend a standalone server
uses. ``ImpermanentGraphDatabase`` never touches the filesystem.
"""

import json
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import Any

from graph_test_server.utils.error import (
    ConstraintViolation,
    NodeNotFound,
    RelationshipNotFound,
)

logger = getLogger(__name__)

STORE_FILE_NAME = "graph.json"
DIRECTIONS = ("all", "in", "out")


@dataclass
class Node:
    id: int
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class Relationship:
    id: int
    start: int
    end: int
    type: str
    properties: dict[str, Any] = field(default_factory=dict)


def _check_properties(properties: Mapping[str, Any] | None) -> dict[str, Any]:
    if properties is None:
        return {}
    if not isinstance(properties, Mapping):
        raise ValueError(f"Properties must be an object, got {type(properties).__name__}")
    for key, value in properties.items():
        if not isinstance(key, str):
            raise ValueError(f"Property keys must be strings, got {key!r}")
        if value is None:
            raise ValueError(f"Property '{key}' has no value")
    return dict(properties)


class GraphDatabase:
    def __init__(self, store_dir: str | Path | None = None):
        self._lock = threading.RLock()
        self._nodes: dict[int, Node] = {}
        self._relationships: dict[int, Relationship] = {}
        self._next_node_id = 0
        self._next_relationship_id = 0
        self._closed = False
        self.store_dir = Path(store_dir) if store_dir is not None else None
        if self.store_dir is not None:
            self._load()

    @property
    def is_persistent(self) -> bool:
        return self.store_dir is not None

    # -- nodes ---------------------------------------------------------

    def create_node(self, properties: Mapping[str, Any] | None = None) -> Node:
        props = _check_properties(properties)
        with self._lock:
            self._ensure_open()
            node = Node(self._next_node_id, props)
            self._nodes[node.id] = node
            self._next_node_id += 1
            return node

    def get_node(self, node_id: int) -> Node:
        with self._lock:
            try:
                return self._nodes[node_id]
            except KeyError:
                raise NodeNotFound(node_id) from None

    def set_node_properties(self, node_id: int, properties: Mapping[str, Any] | None) -> Node:
        props = _check_properties(properties)
        with self._lock:
            node = self.get_node(node_id)
            node.properties = props
            return node

    def delete_node(self, node_id: int) -> None:
        with self._lock:
            self.get_node(node_id)
            attached = [r.id for r in self._relationships.values() if node_id in (r.start, r.end)]
            if attached:
                raise ConstraintViolation(
                    f"Node {node_id} still has relationships {attached} and cannot be deleted"
                )
            del self._nodes[node_id]

    def all_nodes(self) -> list[Node]:
        with self._lock:
            return list(self._nodes.values())

    @property
    def node_count(self) -> int:
        with self._lock:
            return len(self._nodes)

    # -- relationships -------------------------------------------------

    def create_relationship(
        self,
        start: int,
        end: int,
        rel_type: str,
        properties: Mapping[str, Any] | None = None,
    ) -> Relationship:
        if not isinstance(rel_type, str) or not rel_type:
            raise ValueError("Relationship type must be a non-empty string")
        props = _check_properties(properties)
        with self._lock:
            self._ensure_open()
            self.get_node(start)
            self.get_node(end)
            relationship = Relationship(self._next_relationship_id, start, end, rel_type, props)
            self._relationships[relationship.id] = relationship
            self._next_relationship_id += 1
            return relationship

    def get_relationship(self, relationship_id: int) -> Relationship:
        with self._lock:
            try:
                return self._relationships[relationship_id]
            except KeyError:
                raise RelationshipNotFound(relationship_id) from None

    def delete_relationship(self, relationship_id: int) -> None:
        with self._lock:
            self.get_relationship(relationship_id)
            del self._relationships[relationship_id]

    def relationships_of(
        self,
        node_id: int,
        direction: str = "all",
        types: list[str] | None = None,
    ) -> list[Relationship]:
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction '{direction}', expected one of {DIRECTIONS}")
        with self._lock:
            self.get_node(node_id)
            found = []
            for rel in self._relationships.values():
                outgoing = rel.start == node_id
                incoming = rel.end == node_id
                if direction == "out" and not outgoing:
                    continue
                if direction == "in" and not incoming:
                    continue
                if direction == "all" and not (outgoing or incoming):
                    continue
                if types and rel.type not in types:
                    continue
                found.append(rel)
            return found

    def all_relationships(self) -> list[Relationship]:
        with self._lock:
            return list(self._relationships.values())

    def relationship_types(self) -> list[str]:
        with self._lock:
            return sorted({r.type for r in self._relationships.values()})

    @property
    def relationship_count(self) -> int:
        with self._lock:
            return len(self._relationships)

    # -- transactions and lifecycle --------------------------------------

    def transaction(self) -> threading.RLock:
        """Hold the store lock for a multi-step operation (``with db.transaction():``)."""
        return self._lock

    def shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            if self.store_dir is not None:
                self._save()
            self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConstraintViolation("Database has been shut down")

    def _load(self) -> None:
        path = self.store_dir / STORE_FILE_NAME
        if not path.is_file():
            return
        data = json.loads(path.read_text(encoding="utf-8"))
        for raw in data.get("nodes", []):
            self._nodes[raw["id"]] = Node(raw["id"], raw.get("properties", {}))
        for raw in data.get("relationships", []):
            self._relationships[raw["id"]] = Relationship(
                raw["id"], raw["start"], raw["end"], raw["type"], raw.get("properties", {})
            )
        self._next_node_id = data.get("next_node_id", max(self._nodes, default=-1) + 1)
        self._next_relationship_id = data.get(
            "next_relationship_id", max(self._relationships, default=-1) + 1
        )
        logger.info(
            "Loaded %d nodes and %d relationships from %s",
            len(self._nodes),
            len(self._relationships),
            path,
        )

    def _save(self) -> None:
        self.store_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "next_node_id": self._next_node_id,
            "next_relationship_id": self._next_relationship_id,
            "nodes": [{"id": n.id, "properties": n.properties} for n in self._nodes.values()],
            "relationships": [
                {
                    "id": r.id,
                    "start": r.start,
                    "end": r.end,
                    "type": r.type,
                    "properties": r.properties,
                }
                for r in self._relationships.values()
            ],
        }
        (self.store_dir / STORE_FILE_NAME).write_text(json.dumps(data), encoding="utf-8")


class ImpermanentGraphDatabase(GraphDatabase):
    """In-memory only; every instance starts empty and nothing outlives it."""

    def __init__(self) -> None:
        super().__init__(store_dir=None)


DatabaseFactory = Callable[[str | None, Mapping[str, str]], GraphDatabase]


def persistent_database_factory(
    store_dir: str | None, properties: Mapping[str, str]
) -> GraphDatabase:
    """Default factory: a database persisted under ``store_dir``."""
    if not store_dir:
        raise ValueError("graph.server.database.location is not configured")
    return GraphDatabase(store_dir)


class Database:
    """Handle the server hands to modules: the graph plus where it came from."""

    def __init__(self, graph: GraphDatabase, location: str | None = None):
        self.graph = graph
        self.location = location

    def shutdown(self) -> None:
        self.graph.shutdown()
