"""Shared helpers turning graph entities into MCP tool results."""

import json
from typing import Any

from mcp import types as mcp_types

from graph_test_server.database import Node, Relationship


def node_to_dict(node: Node) -> dict[str, Any]:
    return {"id": node.id, "properties": node.properties}


def relationship_to_dict(relationship: Relationship) -> dict[str, Any]:
    return {
        "id": relationship.id,
        "type": relationship.type,
        "start": relationship.start,
        "end": relationship.end,
        "properties": relationship.properties,
    }


def text_result(payload: Any) -> list[mcp_types.TextContent]:
    return [mcp_types.TextContent(type="text", text=json.dumps(payload, indent=2))]


def error_result(message: str) -> list[mcp_types.TextContent]:
    return [mcp_types.TextContent(type="text", text=f"Error: {message}")]
