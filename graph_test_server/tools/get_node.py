from typing import Any

from mcp import types as mcp_types

from graph_test_server.database import Database
from graph_test_server.utils.error import NodeNotFound
from graph_test_server.utils.results import error_result, node_to_dict, text_result


async def handle(database: Database, arguments: dict[str, Any]) -> list[mcp_types.TextContent]:
    node_id = arguments.get("node_id")
    if not isinstance(node_id, int) or isinstance(node_id, bool):
        return error_result("node_id is required and must be an integer")
    try:
        node = database.graph.get_node(node_id)
    except NodeNotFound as e:
        return error_result(str(e))
    return text_result(node_to_dict(node))
