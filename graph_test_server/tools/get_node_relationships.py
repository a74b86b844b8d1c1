from logging import getLogger
from typing import Any

from mcp import types as mcp_types

from graph_test_server.database import DIRECTIONS, Database
from graph_test_server.utils.error import NodeNotFound
from graph_test_server.utils.results import error_result, relationship_to_dict, text_result

logger = getLogger(__name__)


async def handle(database: Database, arguments: dict[str, Any]) -> list[mcp_types.TextContent]:
    """List the relationships of one node.

    ``direction`` is one of all/in/out (default all). ``types`` optionally
    restricts the result to the given relationship types.
    """
    logger.info("Executing get_node_relationships")

    node_id = arguments.get("node_id")
    if not isinstance(node_id, int) or isinstance(node_id, bool):
        return error_result("node_id is required and must be an integer")

    direction = arguments.get("direction") or "all"
    if direction not in DIRECTIONS:
        return error_result(f"direction must be one of {', '.join(DIRECTIONS)}")

    types = arguments.get("types")
    if isinstance(types, str):
        types = [types]

    try:
        relationships = database.graph.relationships_of(node_id, direction, types)
    except NodeNotFound as e:
        return error_result(str(e))

    response = {
        "node_id": node_id,
        "direction": direction,
        "relationships": [relationship_to_dict(r) for r in relationships],
    }
    return text_result(response)
