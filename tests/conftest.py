"""Pytest configuration and fixtures."""

import copy
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from loreweave.ai.llm_client import LLMClient
from loreweave.config import Settings, get_test_settings
from loreweave.models import (
    Entity,
    FeatureType,
    LearningWeight,
    RelationshipSuggestion,
    SuggestionFeature,
    SuggestionFeedback,
    SuggestionStatus,
)
from loreweave.storage.cache import MemoryCache
from loreweave.storage.suggestion_store import pair_type_key, weight_key


class FakeGraphStore:
    """In-memory GraphStore with the same semantics as the Neo4j queries."""

    def __init__(self) -> None:
        self.entities: dict[str, Entity] = {}
        self.edges: list[tuple[str, str, str]] = []  # (source, target, type)
        self.fragments: dict[str, tuple[str, set[str]]] = {}  # id -> (text, mentioned ids)
        self.events: dict[str, tuple[str, float, set[str]]] = {}  # id -> (graph, ts, involved)

    def add_entity(
        self,
        entity_id: str,
        name: str,
        entity_type: str = "character",
        importance: float = 50.0,
        graph_id: str = "graph-1",
    ) -> Entity:
        entity = Entity(
            id=entity_id,
            graph_id=graph_id,
            name=name,
            entity_type=entity_type,
            importance=importance,
        )
        self.entities[entity_id] = entity
        return entity

    def add_edge(self, source: str, target: str, rel_type: str = "ally") -> None:
        self.edges.append((source, target, rel_type))

    def add_fragment(self, fragment_id: str, text: str, *entity_ids: str) -> None:
        self.fragments[fragment_id] = (text, set(entity_ids))

    def add_event(
        self, event_id: str, timestamp: float, *entity_ids: str, graph_id: str = "graph-1"
    ) -> None:
        self.events[event_id] = (graph_id, timestamp, set(entity_ids))

    async def list_graph_ids(self) -> list[str]:
        return sorted({e.graph_id for e in self.entities.values()})

    async def get_entity(self, entity_id: str) -> Entity | None:
        return self.entities.get(entity_id)

    async def get_entities(self, graph_id: str, limit: int | None = None) -> list[Entity]:
        entities = sorted(
            (e for e in self.entities.values() if e.graph_id == graph_id),
            key=lambda e: (-e.importance, e.name),
        )
        return entities[:limit] if limit is not None else entities

    async def edge_exists(self, entity_a: str, entity_b: str) -> bool:
        return any({source, target} == {entity_a, entity_b} for source, target, _ in self.edges)

    async def count_entities(self, graph_id: str) -> int:
        return sum(1 for e in self.entities.values() if e.graph_id == graph_id)

    async def count_relationships(self, graph_id: str) -> int:
        return sum(
            1 for source, _, _ in self.edges if self.entities[source].graph_id == graph_id
        )

    async def count_timeline_events(self, graph_id: str) -> int:
        return sum(1 for g, _, _ in self.events.values() if g == graph_id)

    async def count_fragments(self, entity_id: str) -> int:
        return sum(1 for _, ids in self.fragments.values() if entity_id in ids)

    async def count_shared_fragments(self, entity_a: str, entity_b: str) -> int:
        return sum(
            1 for _, ids in self.fragments.values() if entity_a in ids and entity_b in ids
        )

    async def shared_timeline_stats(
        self, graph_id: str, entity_a: str, entity_b: str
    ) -> tuple[int, float]:
        events = {k: v for k, v in self.events.items() if v[0] == graph_id}
        shared = sum(1 for _, _, ids in events.values() if {entity_a, entity_b} <= ids)
        if not shared:
            return 0, 0.0
        distances = [
            abs(ts1 - ts2)
            for id1, (_, ts1, ids1) in events.items()
            for id2, (_, ts2, ids2) in events.items()
            if id1 != id2 and entity_a in ids1 and entity_b in ids2
        ]
        return shared, sum(distances) / len(distances) if distances else 0.0

    async def count_shared_neighbors(
        self,
        entity_a: str,
        entity_b: str,
        neighbor_type: str,
        relationship_types: list[str],
    ) -> int:
        def neighbors(entity_id: str) -> set[str]:
            return {
                target
                for source, target, rel_type in self.edges
                if source == entity_id
                and rel_type in relationship_types
                and self.entities[target].entity_type == neighbor_type
            }

        return len(neighbors(entity_a) & neighbors(entity_b))

    async def degree(self, entity_id: str) -> int:
        return sum(1 for source, target, _ in self.edges if entity_id in (source, target))

    async def count_co_mentions(self, entity_a: str, entity_b: str) -> int:
        name_a = self.entities[entity_a].name.lower()
        name_b = self.entities[entity_b].name.lower()
        return sum(
            1
            for text, ids in self.fragments.values()
            if ids & {entity_a, entity_b}
            and name_a in text.lower()
            and name_b in text.lower()
        )


class FakeSuggestionStore:
    """In-memory SuggestionStore. Returns copies, like a real round trip."""

    def __init__(self) -> None:
        self.suggestions: dict[str, RelationshipSuggestion] = {}
        self.keys: dict[str, str] = {}  # pair_type_key -> suggestion id
        self.features: dict[str, list[SuggestionFeature]] = {}
        self.feedback: list[SuggestionFeedback] = []
        self.weights: dict[str, LearningWeight] = {}

    def add(
        self,
        suggestion: RelationshipSuggestion,
        features: dict[FeatureType, float] | None = None,
    ) -> RelationshipSuggestion:
        """Seed a suggestion directly, bypassing prediction."""
        self.suggestions[suggestion.id] = copy.deepcopy(suggestion)
        self.keys[pair_type_key(suggestion)] = suggestion.id
        self.features[suggestion.id] = [
            SuggestionFeature(
                suggestion_id=suggestion.id,
                feature_type=feature_type,
                feature_value=value,
                weight=feature_type.default_weight,
            )
            for feature_type, value in (features or {}).items()
        ]
        return suggestion

    async def create_suggestion(
        self,
        suggestion: RelationshipSuggestion,
        features: list[SuggestionFeature],
    ) -> bool:
        key = pair_type_key(suggestion)
        if key in self.keys:
            return False
        self.keys[key] = suggestion.id
        self.suggestions[suggestion.id] = copy.deepcopy(suggestion)
        self.features[suggestion.id] = list(features)
        return True

    async def update_suggestion(self, suggestion: RelationshipSuggestion) -> None:
        self.suggestions[suggestion.id] = copy.deepcopy(suggestion)

    async def get_suggestion(self, suggestion_id: str) -> RelationshipSuggestion | None:
        suggestion = self.suggestions.get(suggestion_id)
        return copy.deepcopy(suggestion) if suggestion else None

    async def find_by_pair(self, entity_a: str, entity_b: str) -> list[RelationshipSuggestion]:
        return [
            copy.deepcopy(s)
            for s in self.suggestions.values()
            if {s.source_entity_id, s.target_entity_id} == {entity_a, entity_b}
        ]

    async def find_pending(self, graph_id: str, limit: int = 50) -> list[RelationshipSuggestion]:
        pending = [
            s for s in self.suggestions.values() if s.graph_id == graph_id and s.is_pending
        ]
        pending.sort(key=lambda s: (s.priority_score, s.confidence_score), reverse=True)
        return [copy.deepcopy(s) for s in pending[:limit]]

    async def get_actioned(self, graph_id: str) -> list[RelationshipSuggestion]:
        return [
            copy.deepcopy(s)
            for s in self.suggestions.values()
            if s.graph_id == graph_id and not s.is_pending
        ]

    async def count_pending(self, graph_id: str) -> int:
        return sum(
            1 for s in self.suggestions.values() if s.graph_id == graph_id and s.is_pending
        )

    async def get_features(self, suggestion_id: str) -> list[SuggestionFeature]:
        return list(self.features.get(suggestion_id, []))

    async def save_feedback(self, feedback: SuggestionFeedback) -> None:
        self.feedback.append(feedback)

    async def has_feedback(self, suggestion_id: str) -> bool:
        return any(f.suggestion_id == suggestion_id for f in self.feedback)

    async def get_feedback_for_graph(self, graph_id: str) -> list[SuggestionFeedback]:
        return [f for f in self.feedback if f.graph_id == graph_id]

    async def count_feedback(self, graph_id: str) -> int:
        return sum(1 for f in self.feedback if f.graph_id == graph_id)

    async def get_weights(
        self, graph_id: str, relationship_type: str | None = None
    ) -> list[LearningWeight]:
        return [
            copy.deepcopy(w)
            for w in self.weights.values()
            if w.graph_id == graph_id and w.relationship_type == relationship_type
        ]

    async def save_weight(self, weight: LearningWeight) -> None:
        key = weight_key(weight.graph_id, weight.feature_type.value, weight.relationship_type)
        self.weights[key] = copy.deepcopy(weight)

    async def update_accuracy(self, graph_id: str, accuracy: float) -> None:
        for weight in self.weights.values():
            if weight.graph_id == graph_id:
                weight.accuracy_score = accuracy

    async def reset_weights(self, graph_id: str) -> int:
        keys = [k for k, w in self.weights.items() if w.graph_id == graph_id]
        for key in keys:
            del self.weights[key]
        return len(keys)

    async def get_statistics(self, graph_id: str) -> dict[str, Any]:
        stats: dict[str, Any] = {status.value: 0 for status in SuggestionStatus}
        for s in self.suggestions.values():
            if s.graph_id == graph_id:
                stats[s.status.value] += 1
        stats["total"] = sum(stats.values())
        return stats


@pytest.fixture
def test_settings() -> Settings:
    """Test settings: no Redis, no LLM, no pauses."""
    return get_test_settings()


@pytest.fixture
def graph_store() -> FakeGraphStore:
    """
    Small story graph:

    Luke and Leia are both members of the Rebellion, share two timeline
    events two ticks apart and one fragment naming both. Tatooine is a
    location Luke visited. Vader lives in another graph.
    """
    store = FakeGraphStore()
    store.add_entity("luke", "Luke", "character", importance=90)
    store.add_entity("leia", "Leia", "character", importance=85)
    store.add_entity("rebels", "Rebellion", "faction", importance=70)
    store.add_entity("tatooine", "Tatooine", "location", importance=40)
    store.add_entity("vader", "Vader", "character", importance=95, graph_id="graph-2")

    store.add_edge("luke", "rebels", "member_of")
    store.add_edge("leia", "rebels", "member_of")
    store.add_edge("luke", "tatooine", "visited")

    store.add_fragment("frag-1", "Luke and Leia escape the Death Star", "luke", "leia")
    store.add_fragment("frag-2", "Luke grew up on Tatooine", "luke", "tatooine")
    store.add_fragment("frag-3", "Leia briefs the Rebellion", "leia", "rebels")

    store.add_event("event-1", 10.0, "luke", "leia")
    store.add_event("event-2", 12.0, "luke", "leia")
    return store


@pytest.fixture
def suggestion_store() -> FakeSuggestionStore:
    return FakeSuggestionStore()


@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache(default_ttl=60)


@pytest.fixture
def make_suggestion():
    """Factory for pending suggestions in graph-1."""

    counter = {"n": 0}

    def factory(
        confidence: float = 80.0,
        rel_type: str = "ally",
        source: str | None = None,
        target: str | None = None,
        **kwargs: Any,
    ) -> RelationshipSuggestion:
        counter["n"] += 1
        n = counter["n"]
        return RelationshipSuggestion(
            graph_id=kwargs.pop("graph_id", "graph-1"),
            source_entity_id=source or f"entity-{n}a",
            target_entity_id=target or f"entity-{n}b",
            suggested_type=rel_type,
            confidence_score=confidence,
            **kwargs,
        )

    return factory


@pytest.fixture
def mock_llm_client() -> LLMClient:
    """Mock LLM client for testing without actual LLM."""
    client = MagicMock(spec=LLMClient)
    client.model = "qwen3:8b"
    client.generate = AsyncMock(return_value="family")
    client.close = AsyncMock()
    return client
