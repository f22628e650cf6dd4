"""Collaborator contracts consumed by the suggestion core.

The graph itself, suggestion persistence and the ephemeral cache are owned
by other services; the core only depends on these narrow protocols.
"""

from typing import Any, Protocol

from loreweave.models import (
    Entity,
    LearningWeight,
    RelationshipSuggestion,
    SuggestionFeature,
    SuggestionFeedback,
)


class GraphStore(Protocol):
    """Read-only access to entities, edges, content fragments and timeline."""

    async def list_graph_ids(self) -> list[str]: ...

    async def get_entity(self, entity_id: str) -> Entity | None: ...

    async def get_entities(self, graph_id: str, limit: int | None = None) -> list[Entity]:
        """Entities of a graph, most important first."""
        ...

    async def edge_exists(self, entity_a: str, entity_b: str) -> bool:
        """True when an edge links the pair in either direction."""
        ...

    async def count_entities(self, graph_id: str) -> int: ...

    async def count_relationships(self, graph_id: str) -> int: ...

    async def count_timeline_events(self, graph_id: str) -> int: ...

    async def count_fragments(self, entity_id: str) -> int: ...

    async def count_shared_fragments(self, entity_a: str, entity_b: str) -> int: ...

    async def shared_timeline_stats(
        self, graph_id: str, entity_a: str, entity_b: str
    ) -> tuple[int, float]:
        """(shared event count, average time distance between their events)."""
        ...

    async def count_shared_neighbors(
        self,
        entity_a: str,
        entity_b: str,
        neighbor_type: str,
        relationship_types: list[str],
    ) -> int: ...

    async def degree(self, entity_id: str) -> int: ...

    async def count_co_mentions(self, entity_a: str, entity_b: str) -> int:
        """Fragments of either entity whose text names both of them."""
        ...


class SuggestionStore(Protocol):
    """Persistence for suggestions, feature snapshots, feedback and weights."""

    async def create_suggestion(
        self,
        suggestion: RelationshipSuggestion,
        features: list[SuggestionFeature],
    ) -> bool:
        """Insert unless the unordered pair already has this type. False on duplicate."""
        ...

    async def update_suggestion(self, suggestion: RelationshipSuggestion) -> None: ...

    async def get_suggestion(self, suggestion_id: str) -> RelationshipSuggestion | None: ...

    async def find_by_pair(self, entity_a: str, entity_b: str) -> list[RelationshipSuggestion]: ...

    async def find_pending(self, graph_id: str, limit: int = 50) -> list[RelationshipSuggestion]: ...

    async def get_actioned(self, graph_id: str) -> list[RelationshipSuggestion]: ...

    async def count_pending(self, graph_id: str) -> int: ...

    async def get_features(self, suggestion_id: str) -> list[SuggestionFeature]: ...

    async def save_feedback(self, feedback: SuggestionFeedback) -> None: ...

    async def has_feedback(self, suggestion_id: str) -> bool:
        """True when a decision was already recorded against the suggestion."""
        ...

    async def get_feedback_for_graph(self, graph_id: str) -> list[SuggestionFeedback]: ...

    async def count_feedback(self, graph_id: str) -> int: ...

    async def get_weights(
        self, graph_id: str, relationship_type: str | None = None
    ) -> list[LearningWeight]: ...

    async def save_weight(self, weight: LearningWeight) -> None: ...

    async def update_accuracy(self, graph_id: str, accuracy: float) -> None: ...

    async def reset_weights(self, graph_id: str) -> int: ...

    async def get_statistics(self, graph_id: str) -> dict[str, Any]: ...


class EphemeralCache(Protocol):
    """Short-lived key/value store with per-key TTL."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def delete_if_equals(self, key: str, value: Any) -> bool:
        """Atomically delete the key only while it still holds the value."""
        ...

    async def set_if_absent(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Atomically set the key only if it does not exist."""
        ...
