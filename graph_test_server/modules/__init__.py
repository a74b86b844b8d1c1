from graph_test_server.modules.base import ServerModule
from graph_test_server.modules.mcp_tools import McpModule
from graph_test_server.modules.rest_api import RestApiModule
from graph_test_server.modules.third_party import ThirdPartyModule

MODULE_REGISTRY: dict[str, type[ServerModule]] = {
    module.name: module for module in (RestApiModule, ThirdPartyModule, McpModule)
}

__all__ = [
    "MODULE_REGISTRY",
    "McpModule",
    "RestApiModule",
    "ServerModule",
    "ThirdPartyModule",
]
