"""Third-party application mounted by tests through graph.server.thirdparty_mounts."""

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from graph_test_server.database import Database


def make_app(database: Database) -> Starlette:
    async def stats(request: Request) -> JSONResponse:
        graph = database.graph
        return JSONResponse({"nodes": graph.node_count, "relationships": graph.relationship_count})

    return Starlette(routes=[Route("/stats", stats)])
