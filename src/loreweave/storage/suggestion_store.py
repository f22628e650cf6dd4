"""Neo4j persistence for suggestions, feature snapshots, feedback and learned weights."""

import logging
from typing import Any

from loreweave.models import (
    LearningWeight,
    RelationshipSuggestion,
    SuggestionFeature,
    SuggestionFeedback,
    SuggestionStatus,
    pair_key,
)
from loreweave.storage.neo4j_client import Neo4jClient

logger = logging.getLogger(__name__)


def pair_type_key(suggestion: RelationshipSuggestion) -> str:
    """Uniqueness key: unordered pair plus suggested type."""
    return f"{suggestion.pair_key}|{suggestion.suggested_type}"


def weight_key(graph_id: str, feature_type: str, relationship_type: str | None) -> str:
    return f"{graph_id}|{feature_type}|{relationship_type or '*'}"


class Neo4jSuggestionStore:
    """SuggestionStore backed by the shared Neo4j client."""

    def __init__(self, client: Neo4jClient) -> None:
        self.client = client

    # ==========================================================================
    # Suggestions
    # ==========================================================================

    async def create_suggestion(
        self,
        suggestion: RelationshipSuggestion,
        features: list[SuggestionFeature],
    ) -> bool:
        """Insert a suggestion with its feature snapshot. False when the pair/type already exists."""
        query = """
        MERGE (s:Suggestion {pair_type_key: $key})
        ON CREATE SET s += $props
        RETURN s.id = $id AS created
        """
        rows = await self.client.execute_write(
            query,
            key=pair_type_key(suggestion),
            id=suggestion.id,
            props=suggestion.to_dict(),
        )
        created = bool(rows and rows[0]["created"])
        if not created:
            logger.debug(f"Suggestion for {suggestion.pair_key} ({suggestion.suggested_type}) exists")
            return False

        if features:
            feature_query = """
            MATCH (s:Suggestion {id: $id})
            UNWIND $items AS item
            CREATE (s)-[:HAS_FEATURE]->(f:SuggestionFeature)
            SET f = item
            """
            await self.client.execute_write(
                feature_query,
                id=suggestion.id,
                items=[feature.to_dict() for feature in features],
            )
        return True

    async def update_suggestion(self, suggestion: RelationshipSuggestion) -> None:
        # pair_type_key keeps the generated type so a modified suggestion still blocks regeneration
        query = """
        MATCH (s:Suggestion {id: $id})
        SET s += $props
        """
        props = suggestion.to_dict()
        props.pop("id")
        await self.client.execute_write(query, id=suggestion.id, props=props)

    async def get_suggestion(self, suggestion_id: str) -> RelationshipSuggestion | None:
        query = "MATCH (s:Suggestion {id: $id}) RETURN s"
        rows = await self.client.execute_query(query, id=suggestion_id)
        if not rows:
            return None
        return RelationshipSuggestion.from_dict(dict(rows[0]["s"]))

    async def find_by_pair(self, entity_a: str, entity_b: str) -> list[RelationshipSuggestion]:
        query = "MATCH (s:Suggestion {pair_key: $pair_key}) RETURN s"
        rows = await self.client.execute_query(query, pair_key=pair_key(entity_a, entity_b))
        return [RelationshipSuggestion.from_dict(dict(row["s"])) for row in rows]

    async def find_pending(self, graph_id: str, limit: int = 50) -> list[RelationshipSuggestion]:
        query = """
        MATCH (s:Suggestion {graph_id: $graph_id, status: $status})
        RETURN s
        ORDER BY s.priority_score DESC, s.confidence_score DESC
        LIMIT $limit
        """
        rows = await self.client.execute_query(
            query, graph_id=graph_id, status=SuggestionStatus.PENDING.value, limit=limit
        )
        return [RelationshipSuggestion.from_dict(dict(row["s"])) for row in rows]

    async def get_actioned(self, graph_id: str) -> list[RelationshipSuggestion]:
        query = """
        MATCH (s:Suggestion {graph_id: $graph_id})
        WHERE s.status <> $status
        RETURN s
        ORDER BY s.updated_at DESC
        """
        rows = await self.client.execute_query(
            query, graph_id=graph_id, status=SuggestionStatus.PENDING.value
        )
        return [RelationshipSuggestion.from_dict(dict(row["s"])) for row in rows]

    async def count_pending(self, graph_id: str) -> int:
        query = """
        MATCH (s:Suggestion {graph_id: $graph_id, status: $status})
        RETURN count(s) AS total
        """
        return int(
            await self.client.execute_scalar(
                query, graph_id=graph_id, status=SuggestionStatus.PENDING.value
            )
        )

    async def get_features(self, suggestion_id: str) -> list[SuggestionFeature]:
        query = """
        MATCH (:Suggestion {id: $id})-[:HAS_FEATURE]->(f:SuggestionFeature)
        RETURN f
        ORDER BY f.feature_value DESC
        """
        rows = await self.client.execute_query(query, id=suggestion_id)
        return [SuggestionFeature.from_dict(dict(row["f"])) for row in rows]

    # ==========================================================================
    # Feedback (append-only)
    # ==========================================================================

    async def save_feedback(self, feedback: SuggestionFeedback) -> None:
        query = """
        MATCH (s:Suggestion {id: $suggestion_id})
        CREATE (fb:SuggestionFeedback)-[:ABOUT]->(s)
        SET fb = $props
        """
        await self.client.execute_write(
            query, suggestion_id=feedback.suggestion_id, props=feedback.to_dict()
        )

    async def has_feedback(self, suggestion_id: str) -> bool:
        query = """
        MATCH (fb:SuggestionFeedback {suggestion_id: $suggestion_id})
        RETURN count(fb) > 0 AS found
        """
        return bool(
            await self.client.execute_scalar(query, default=False, suggestion_id=suggestion_id)
        )

    async def get_feedback_for_graph(self, graph_id: str) -> list[SuggestionFeedback]:
        query = """
        MATCH (fb:SuggestionFeedback {graph_id: $graph_id})
        RETURN fb
        ORDER BY fb.created_at ASC
        """
        rows = await self.client.execute_query(query, graph_id=graph_id)
        return [SuggestionFeedback.from_dict(dict(row["fb"])) for row in rows]

    async def count_feedback(self, graph_id: str) -> int:
        query = "MATCH (fb:SuggestionFeedback {graph_id: $graph_id}) RETURN count(fb) AS total"
        return int(await self.client.execute_scalar(query, graph_id=graph_id))

    # ==========================================================================
    # Learning weights
    # ==========================================================================

    async def get_weights(
        self, graph_id: str, relationship_type: str | None = None
    ) -> list[LearningWeight]:
        if relationship_type is None:
            query = """
            MATCH (w:LearningWeight {graph_id: $graph_id})
            WHERE w.relationship_type IS NULL
            RETURN w
            """
        else:
            query = """
            MATCH (w:LearningWeight {graph_id: $graph_id, relationship_type: $relationship_type})
            RETURN w
            """
        rows = await self.client.execute_query(
            query, graph_id=graph_id, relationship_type=relationship_type
        )
        return [LearningWeight.from_dict(dict(row["w"])) for row in rows]

    async def save_weight(self, weight: LearningWeight) -> None:
        query = """
        MERGE (w:LearningWeight {weight_key: $key})
        SET w += $props
        """
        key = weight_key(weight.graph_id, weight.feature_type.value, weight.relationship_type)
        await self.client.execute_write(query, key=key, props=weight.to_dict())

    async def update_accuracy(self, graph_id: str, accuracy: float) -> None:
        query = """
        MATCH (w:LearningWeight {graph_id: $graph_id})
        SET w.accuracy_score = $accuracy
        """
        await self.client.execute_write(query, graph_id=graph_id, accuracy=accuracy)

    async def reset_weights(self, graph_id: str) -> int:
        query = """
        MATCH (w:LearningWeight {graph_id: $graph_id})
        DETACH DELETE w
        RETURN count(w) AS deleted
        """
        rows = await self.client.execute_write(query, graph_id=graph_id)
        return int(rows[0]["deleted"]) if rows else 0

    # ==========================================================================
    # Statistics
    # ==========================================================================

    async def get_statistics(self, graph_id: str) -> dict[str, Any]:
        """Counts per status, average confidence and acceptance rate."""
        query = """
        MATCH (s:Suggestion {graph_id: $graph_id})
        RETURN s.status AS status, count(s) AS count, avg(s.confidence_score) AS avg_conf
        """
        rows = await self.client.execute_query(query, graph_id=graph_id)

        stats: dict[str, Any] = {status.value: 0 for status in SuggestionStatus}
        total = 0
        confidence_sum = 0.0
        for row in rows:
            count = int(row["count"])
            stats[row["status"]] = count
            total += count
            confidence_sum += float(row["avg_conf"] or 0.0) * count

        actioned = total - stats[SuggestionStatus.PENDING.value]
        positive = sum(stats[status.value] for status in SuggestionStatus if status.is_positive)
        stats["total"] = total
        stats["avg_confidence"] = round(confidence_sum / total, 2) if total else 0.0
        stats["acceptance_rate"] = round(positive / actioned * 100, 2) if actioned else 0.0
        return stats
