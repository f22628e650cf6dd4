"""Read-only Neo4j access to story entities, edges, fragments and timeline events."""

import logging

from loreweave.models import Entity
from loreweave.storage.neo4j_client import Neo4jClient

logger = logging.getLogger(__name__)


class Neo4jGraphStore:
    """GraphStore backed by the shared Neo4j client."""

    def __init__(self, client: Neo4jClient) -> None:
        self.client = client

    # ==========================================================================
    # Entities
    # ==========================================================================

    async def list_graph_ids(self) -> list[str]:
        query = """
        MATCH (e:Entity)
        RETURN DISTINCT e.graph_id AS graph_id
        ORDER BY graph_id
        """
        rows = await self.client.execute_query(query)
        return [row["graph_id"] for row in rows if row["graph_id"] is not None]

    async def get_entity(self, entity_id: str) -> Entity | None:
        query = "MATCH (e:Entity {id: $id}) RETURN e"
        rows = await self.client.execute_query(query, id=entity_id)
        if not rows:
            return None
        return Entity.from_dict(dict(rows[0]["e"]))

    async def get_entities(self, graph_id: str, limit: int | None = None) -> list[Entity]:
        """Entities of a graph ordered by importance, then name."""
        query = """
        MATCH (e:Entity {graph_id: $graph_id})
        RETURN e
        ORDER BY e.importance DESC, e.name ASC
        """
        params: dict = {"graph_id": graph_id}
        if limit is not None:
            query += "LIMIT $limit"
            params["limit"] = limit
        rows = await self.client.execute_query(query, **params)
        return [Entity.from_dict(dict(row["e"])) for row in rows]

    async def count_entities(self, graph_id: str) -> int:
        query = "MATCH (e:Entity {graph_id: $graph_id}) RETURN count(e) AS total"
        return int(await self.client.execute_scalar(query, graph_id=graph_id))

    # ==========================================================================
    # Relationships
    # ==========================================================================

    async def edge_exists(self, entity_a: str, entity_b: str) -> bool:
        query = """
        MATCH (a:Entity {id: $a})-[r:RELATES_TO]-(b:Entity {id: $b})
        RETURN count(r) > 0 AS found
        """
        return bool(await self.client.execute_scalar(query, default=False, a=entity_a, b=entity_b))

    async def count_relationships(self, graph_id: str) -> int:
        query = """
        MATCH (a:Entity {graph_id: $graph_id})-[r:RELATES_TO]->(:Entity)
        RETURN count(r) AS total
        """
        return int(await self.client.execute_scalar(query, graph_id=graph_id))

    async def degree(self, entity_id: str) -> int:
        query = """
        MATCH (e:Entity {id: $id})-[r:RELATES_TO]-(:Entity)
        RETURN count(r) AS degree
        """
        return int(await self.client.execute_scalar(query, id=entity_id))

    async def count_shared_neighbors(
        self,
        entity_a: str,
        entity_b: str,
        neighbor_type: str,
        relationship_types: list[str],
    ) -> int:
        """Neighbours of the given type both entities point at through the given edge types."""
        query = """
        MATCH (a:Entity {id: $a})-[r1:RELATES_TO]->(n:Entity {entity_type: $neighbor_type})
        MATCH (b:Entity {id: $b})-[r2:RELATES_TO]->(n)
        WHERE r1.type IN $types AND r2.type IN $types
        RETURN count(DISTINCT n) AS shared
        """
        return int(
            await self.client.execute_scalar(
                query,
                a=entity_a,
                b=entity_b,
                neighbor_type=neighbor_type,
                types=relationship_types,
            )
        )

    # ==========================================================================
    # Content fragments
    # ==========================================================================

    async def count_fragments(self, entity_id: str) -> int:
        query = """
        MATCH (f:Fragment)-[:MENTIONS]->(:Entity {id: $id})
        RETURN count(DISTINCT f) AS total
        """
        return int(await self.client.execute_scalar(query, id=entity_id))

    async def count_shared_fragments(self, entity_a: str, entity_b: str) -> int:
        query = """
        MATCH (:Entity {id: $a})<-[:MENTIONS]-(f:Fragment)-[:MENTIONS]->(:Entity {id: $b})
        RETURN count(DISTINCT f) AS shared
        """
        return int(await self.client.execute_scalar(query, a=entity_a, b=entity_b))

    async def count_co_mentions(self, entity_a: str, entity_b: str) -> int:
        """Fragments attached to either entity whose text contains both canonical names."""
        query = """
        MATCH (a:Entity {id: $a}), (b:Entity {id: $b})
        MATCH (f:Fragment)-[:MENTIONS]->(e:Entity)
        WHERE e.id IN [$a, $b]
          AND toLower(f.text) CONTAINS toLower(a.name)
          AND toLower(f.text) CONTAINS toLower(b.name)
        RETURN count(DISTINCT f) AS mentions
        """
        return int(await self.client.execute_scalar(query, a=entity_a, b=entity_b))

    # ==========================================================================
    # Timeline
    # ==========================================================================

    async def count_timeline_events(self, graph_id: str) -> int:
        query = "MATCH (t:TimelineEvent {graph_id: $graph_id}) RETURN count(t) AS total"
        return int(await self.client.execute_scalar(query, graph_id=graph_id))

    async def shared_timeline_stats(
        self, graph_id: str, entity_a: str, entity_b: str
    ) -> tuple[int, float]:
        """Shared event count and mean time distance between the two entities' events."""
        shared_query = """
        MATCH (:Entity {id: $a})<-[:INVOLVES]-(t:TimelineEvent {graph_id: $graph_id})
              -[:INVOLVES]->(:Entity {id: $b})
        RETURN count(DISTINCT t) AS shared
        """
        distance_query = """
        MATCH (:Entity {id: $a})<-[:INVOLVES]-(t1:TimelineEvent {graph_id: $graph_id})
        MATCH (:Entity {id: $b})<-[:INVOLVES]-(t2:TimelineEvent {graph_id: $graph_id})
        WHERE t1.id <> t2.id
        RETURN avg(abs(t1.timestamp - t2.timestamp)) AS avg_distance
        """
        params = {"graph_id": graph_id, "a": entity_a, "b": entity_b}
        shared = int(await self.client.execute_scalar(shared_query, **params))
        if shared == 0:
            return 0, 0.0
        avg_distance = float(await self.client.execute_scalar(distance_query, default=0.0, **params))
        logger.debug(
            f"Timeline stats {entity_a}/{entity_b}: {shared} shared, avg distance {avg_distance:.2f}"
        )
        return shared, avg_distance
