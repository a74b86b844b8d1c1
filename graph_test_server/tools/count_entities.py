from typing import Any

from mcp import types as mcp_types

from graph_test_server.database import Database
from graph_test_server.utils.results import text_result


async def handle(database: Database, arguments: dict[str, Any]) -> list[mcp_types.TextContent]:
    graph = database.graph
    with graph.transaction():
        response = {
            "nodes": graph.node_count,
            "relationships": graph.relationship_count,
            "relationship_types": graph.relationship_types(),
        }
    return text_result(response)
