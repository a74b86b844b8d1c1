"""MCP tools surface over the graph, served with streamable HTTP."""

from collections.abc import AsyncIterator, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from functools import partial
from logging import getLogger
from typing import Any

from mcp import types as mcp_types
from mcp.server import Server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from mcp.types import Tool
from starlette.routing import BaseRoute, Mount
from starlette.types import Receive, Scope, Send

from graph_test_server.database import Database
from graph_test_server.modules.base import ServerModule, normalize_mount_path
from graph_test_server.tools import (
    count_entities,
    create_node,
    get_node,
    get_node_relationships,
)

logger = getLogger(__name__)

MCP_PATH_KEY = "graph.server.mcp.path"
DEFAULT_MCP_PATH = "/mcp"
SERVER_NAME = "graph-test-server"


class ServerContext:
    def __init__(self, database: Database):
        self.database = database


@asynccontextmanager
async def server_lifespan(
    server: Server[ServerContext], database: Database
) -> AsyncIterator[ServerContext]:
    yield ServerContext(database)


async def list_tools_impl(_server: Server[ServerContext]) -> list[Tool]:
    return [
        Tool(
            name="count_entities",
            description="Count nodes and relationships and list the relationship types in use",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="create_node",
            description="Create a node with the given properties",
            inputSchema={
                "type": "object",
                "properties": {
                    "properties": {"type": "object", "description": "Node properties"}
                },
            },
        ),
        Tool(
            name="get_node",
            description="Fetch a node by id",
            inputSchema={
                "type": "object",
                "properties": {"node_id": {"type": "integer", "description": "Node id"}},
                "required": ["node_id"],
            },
        ),
        Tool(
            name="get_node_relationships",
            description="List the relationships of a node, optionally by direction and type",
            inputSchema={
                "type": "object",
                "properties": {
                    "node_id": {"type": "integer", "description": "Node id"},
                    "direction": {"type": "string", "enum": ["all", "in", "out"]},
                    "types": {
                        "oneOf": [
                            {"type": "string"},
                            {"type": "array", "items": {"type": "string"}},
                        ],
                        "description": "Relationship type(s) to keep",
                    },
                },
                "required": ["node_id"],
            },
        ),
    ]


async def call_tool_impl(
    _server: Server[ServerContext], name: str, arguments: dict[str, Any]
) -> list[mcp_types.TextContent]:
    try:
        database = _server.request_context.lifespan_context.database
        handlers = {
            "count_entities": count_entities.handle,
            "create_node": create_node.handle,
            "get_node": get_node.handle,
            "get_node_relationships": get_node_relationships.handle,
        }
        if name not in handlers:
            return [mcp_types.TextContent(type="text", text=f"Unknown tool: {name}")]
        return await handlers[name](database, arguments or {})
    except Exception as e:  # noqa: BLE001
        logger.exception("Tool %s failed", name)
        return [mcp_types.TextContent(type="text", text=f"Error: {str(e)}")]


def create_mcp_server(database: Database) -> Server[ServerContext]:
    server = Server[ServerContext](
        SERVER_NAME,
        lifespan=partial(server_lifespan, database=database),
    )
    server.list_tools()(partial(list_tools_impl, server))
    server.call_tool()(partial(call_tool_impl, server))
    return server


class McpModule(ServerModule):
    name = "mcp"

    def __init__(self, database: Database, properties: Mapping[str, str]):
        super().__init__(database, properties)
        self.server = create_mcp_server(database)
        # run() may be entered once per manager, hence one manager per module object.
        self.session_manager = StreamableHTTPSessionManager(
            app=self.server, json_response=True, stateless=True
        )

    @property
    def path(self) -> str:
        return normalize_mount_path(self.properties.get(MCP_PATH_KEY) or DEFAULT_MCP_PATH)

    async def handle_streamable_http(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.session_manager.handle_request(scope, receive, send)

    def routes(self) -> list[BaseRoute]:
        return [Mount(self.path, app=self.handle_streamable_http)]

    def lifespan(self) -> AbstractAsyncContextManager[None]:
        return self.session_manager.run()
