from logging import getLogger

from graph_test_server.database import GraphDatabase

logger = getLogger(__name__)


class DatabaseCleaner:
    """Remove every relationship and node while leaving the database usable."""

    def __init__(self, graph: GraphDatabase):
        self.graph = graph

    def clean_db(self) -> dict[str, int]:
        with self.graph.transaction():
            relationships = self.graph.all_relationships()
            for relationship in relationships:
                self.graph.delete_relationship(relationship.id)
            nodes = self.graph.all_nodes()
            for node in nodes:
                self.graph.delete_node(node.id)
        result = {"nodes": len(nodes), "relationships": len(relationships)}
        logger.debug("Cleaned database: %s", result)
        return result
