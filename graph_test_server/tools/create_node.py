from typing import Any

from mcp import types as mcp_types

from graph_test_server.database import Database
from graph_test_server.utils.results import error_result, node_to_dict, text_result


async def handle(database: Database, arguments: dict[str, Any]) -> list[mcp_types.TextContent]:
    properties = arguments.get("properties") or {}
    if not isinstance(properties, dict):
        return error_result("properties must be an object")
    try:
        node = database.graph.create_node(properties)
    except ValueError as e:
        return error_result(str(e))
    return text_result(node_to_dict(node))
