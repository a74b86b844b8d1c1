"""REST API over the graph, mounted under ``graph.server.rest_api.path``."""

import json
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import BaseRoute, Mount, Route

from graph_test_server.database import DIRECTIONS, Node, Relationship
from graph_test_server.modules.base import ServerModule, normalize_mount_path
from graph_test_server.utils.error import (
    ConstraintViolation,
    NodeNotFound,
    RelationshipNotFound,
)


REST_API_PATH_KEY = "graph.server.rest_api.path"
DEFAULT_REST_API_PATH = "/db/data"

Endpoint = Callable[[Request], Awaitable[Response]]


def _error(status: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        {"message": str(exc), "exception": type(exc).__name__}, status_code=status
    )


def _handles_errors(endpoint: Endpoint) -> Endpoint:
    @wraps(endpoint)
    async def wrapper(request: Request) -> Response:
        try:
            return await endpoint(request)
        except (NodeNotFound, RelationshipNotFound) as e:
            return _error(404, e)
        except ConstraintViolation as e:
            return _error(409, e)
        except (ValueError, TypeError) as e:
            return _error(400, e)

    return wrapper


async def _read_json(request: Request, default: Any = None) -> Any:
    body = await request.body()
    if not body.strip():
        return default
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise ValueError(f"Request body is not valid JSON: {e.msg}") from e


def _node_id_from(reference: Any) -> int:
    """Accept a node id or a node URI such as http://host/db/data/node/3."""
    if isinstance(reference, bool):
        raise ValueError(f"Invalid node reference {reference!r}")
    if isinstance(reference, int):
        return reference
    if isinstance(reference, str):
        tail = reference.rstrip("/").rsplit("/", 1)[-1]
        if tail.isdigit():
            return int(tail)
    raise ValueError(f"Invalid node reference {reference!r}")


class RestApiModule(ServerModule):
    name = "rest_api"

    @property
    def path(self) -> str:
        return normalize_mount_path(self.properties.get(REST_API_PATH_KEY) or DEFAULT_REST_API_PATH)

    def routes(self) -> list[BaseRoute]:
        return [
            Mount(
                self.path,
                routes=[
                    Route("/", _handles_errors(self.service_root), methods=["GET"]),
                    Route("/node", _handles_errors(self.create_node), methods=["POST"]),
                    Route(
                        "/node/{node_id:int}",
                        _handles_errors(self.node),
                        methods=["GET", "DELETE"],
                    ),
                    Route(
                        "/node/{node_id:int}/properties",
                        _handles_errors(self.node_properties),
                        methods=["GET", "PUT"],
                    ),
                    Route(
                        "/node/{node_id:int}/relationships",
                        _handles_errors(self.create_relationship),
                        methods=["POST"],
                    ),
                    Route(
                        "/node/{node_id:int}/relationships/{direction}",
                        _handles_errors(self.node_relationships),
                        methods=["GET"],
                    ),
                    Route(
                        "/relationship/types",
                        _handles_errors(self.relationship_types),
                        methods=["GET"],
                    ),
                    Route(
                        "/relationship/{relationship_id:int}",
                        _handles_errors(self.relationship),
                        methods=["GET", "DELETE"],
                    ),
                ],
            )
        ]

    @property
    def graph(self):
        return self.database.graph

    def _uri(self, request: Request, suffix: str = "") -> str:
        return str(request.url.replace(path=f"{self.path}{suffix}", query=""))

    def _node_repr(self, request: Request, node: Node) -> dict[str, Any]:
        self_uri = self._uri(request, f"/node/{node.id}")
        return {
            "self": self_uri,
            "id": node.id,
            "data": node.properties,
            "properties": f"{self_uri}/properties",
            "create_relationship": f"{self_uri}/relationships",
            "all_relationships": f"{self_uri}/relationships/all",
            "incoming_relationships": f"{self_uri}/relationships/in",
            "outgoing_relationships": f"{self_uri}/relationships/out",
        }

    def _relationship_repr(self, request: Request, rel: Relationship) -> dict[str, Any]:
        return {
            "self": self._uri(request, f"/relationship/{rel.id}"),
            "id": rel.id,
            "type": rel.type,
            "start": self._uri(request, f"/node/{rel.start}"),
            "end": self._uri(request, f"/node/{rel.end}"),
            "data": rel.properties,
        }

    async def service_root(self, request: Request) -> Response:
        return JSONResponse(
            {
                "node": self._uri(request, "/node"),
                "relationship_types": self._uri(request, "/relationship/types"),
                "node_count": self.graph.node_count,
                "relationship_count": self.graph.relationship_count,
            }
        )

    async def create_node(self, request: Request) -> Response:
        properties = await _read_json(request, default={})
        node = self.graph.create_node(properties)
        body = self._node_repr(request, node)
        return JSONResponse(body, status_code=201, headers={"Location": body["self"]})

    async def node(self, request: Request) -> Response:
        node_id = request.path_params["node_id"]
        if request.method == "DELETE":
            self.graph.delete_node(node_id)
            return Response(status_code=204)
        return JSONResponse(self._node_repr(request, self.graph.get_node(node_id)))

    async def node_properties(self, request: Request) -> Response:
        node_id = request.path_params["node_id"]
        if request.method == "PUT":
            self.graph.set_node_properties(node_id, await _read_json(request, default={}))
            return Response(status_code=204)
        return JSONResponse(self.graph.get_node(node_id).properties)

    async def create_relationship(self, request: Request) -> Response:
        body = await _read_json(request, default={})
        if not isinstance(body, dict):
            raise ValueError("Relationship description must be an object")
        if "to" not in body or "type" not in body:
            raise ValueError("Relationship description needs 'to' and 'type'")
        relationship = self.graph.create_relationship(
            request.path_params["node_id"],
            _node_id_from(body["to"]),
            body["type"],
            body.get("data"),
        )
        payload = self._relationship_repr(request, relationship)
        return JSONResponse(payload, status_code=201, headers={"Location": payload["self"]})

    async def node_relationships(self, request: Request) -> Response:
        direction = request.path_params["direction"]
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction '{direction}'")
        types_param = request.query_params.get("types", "")
        types = [t.strip() for t in types_param.split(",") if t.strip()] or None
        relationships = self.graph.relationships_of(
            request.path_params["node_id"], direction, types
        )
        return JSONResponse([self._relationship_repr(request, r) for r in relationships])

    async def relationship_types(self, request: Request) -> Response:
        return JSONResponse(self.graph.relationship_types())

    async def relationship(self, request: Request) -> Response:
        relationship_id = request.path_params["relationship_id"]
        if request.method == "DELETE":
            self.graph.delete_relationship(relationship_id)
            return Response(status_code=204)
        return JSONResponse(
            self._relationship_repr(request, self.graph.get_relationship(relationship_id))
        )
