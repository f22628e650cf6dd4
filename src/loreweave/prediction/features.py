"""Pairwise feature extraction.

Every feature is a float in [0, 1] computed from the graph store:

- co_occurrence: shared content fragments / fragments of the less-mentioned entity
- timeline_proximity: 0.6 * shared-event score + 0.4 * closeness in time
- attribute_similarity: same type (+0.3), importance within 20 (+0.2), over checks
- shared_location: common location neighbours, capped
- shared_faction: 1.0 when both are members of one faction
- network_centrality: mean degree centrality of the pair
- mention_frequency: fragments naming both entities, capped
"""

import logging
import math
from collections.abc import Awaitable, Callable

from loreweave.errors import ComputationError, InvalidPairError, ValidationError
from loreweave.models import DEFAULT_WEIGHTS, Entity, FeatureType, SuggestionFeature, pair_key
from loreweave.prediction.config import FeatureConfig
from loreweave.storage.base import EphemeralCache, GraphStore
from loreweave.storage.cache import MemoryCache

logger = logging.getLogger(__name__)


def normalize_feature(value: float, min_value: float, max_value: float) -> float:
    """Min-max normalize into [0, 1]. Degenerate ranges give 0.5, non-finite input 0."""
    if not math.isfinite(value):
        return 0.0
    if max_value <= min_value:
        return 0.5
    normalized = (value - min_value) / (max_value - min_value)
    return max(0.0, min(1.0, normalized))


def build_feature_snapshot(
    suggestion_id: str,
    features: dict[FeatureType, float],
    weights: dict[FeatureType, float],
) -> list[SuggestionFeature]:
    """Feature rows with the weight in effect at generation time."""
    return [
        SuggestionFeature(
            suggestion_id=suggestion_id,
            feature_type=feature_type,
            feature_value=value,
            weight=weights.get(feature_type, DEFAULT_WEIGHTS[feature_type]),
        )
        for feature_type, value in features.items()
    ]


class FeatureExtractor:
    """Computes the feature vector for an entity pair."""

    def __init__(
        self,
        graph_store: GraphStore,
        config: FeatureConfig | None = None,
        cache: EphemeralCache | None = None,
    ) -> None:
        self.graph_store = graph_store
        self.config = config or FeatureConfig()
        self.cache = cache or MemoryCache(default_ttl=self.config.cache_ttl)

    async def extract(
        self, entity_a: str, entity_b: str, graph_id: str
    ) -> dict[FeatureType, float]:
        """Extract all features for a pair. Order of the pair does not matter."""
        if entity_a == entity_b:
            raise InvalidPairError(entity_a)

        try:
            features = {
                FeatureType.CO_OCCURRENCE: await self.co_occurrence(entity_a, entity_b),
                FeatureType.TIMELINE_PROXIMITY: await self.timeline_proximity(
                    entity_a, entity_b, graph_id
                ),
                FeatureType.ATTRIBUTE_SIMILARITY: await self.attribute_similarity(
                    entity_a, entity_b
                ),
                FeatureType.SHARED_LOCATION: await self.shared_location(entity_a, entity_b),
                FeatureType.SHARED_FACTION: await self.shared_faction(entity_a, entity_b),
                FeatureType.NETWORK_CENTRALITY: await self.network_centrality(
                    entity_a, entity_b, graph_id
                ),
                FeatureType.MENTION_FREQUENCY: await self.mention_frequency(entity_a, entity_b),
            }
        except ValidationError:
            raise
        except Exception as e:
            logger.error(f"Feature extraction failed for {entity_a}-{entity_b}: {e}")
            raise ComputationError(
                f"Feature extraction failed for {entity_a}-{entity_b}: {e}"
            ) from e

        logger.debug(f"Extracted {len(features)} features for {entity_a}-{entity_b}")
        return features

    async def _cached(
        self,
        feature_type: FeatureType,
        entity_a: str,
        entity_b: str,
        compute: Callable[[], Awaitable[float]],
    ) -> float:
        key = f"feature:{feature_type.value}:{pair_key(entity_a, entity_b)}"
        cached = await self.cache.get(key)
        if cached is not None:
            return float(cached)
        value = await compute()
        await self.cache.set(key, value, ttl=self.config.cache_ttl)
        return value

    # ==========================================================================
    # Individual features
    # ==========================================================================

    async def co_occurrence(self, entity_a: str, entity_b: str) -> float:
        async def compute() -> float:
            total_a = await self.graph_store.count_fragments(entity_a)
            total_b = await self.graph_store.count_fragments(entity_b)
            if not total_a or not total_b:
                return 0.0
            shared = await self.graph_store.count_shared_fragments(entity_a, entity_b)
            return normalize_feature(shared, 0, max(min(total_a, total_b), 1))

        return await self._cached(FeatureType.CO_OCCURRENCE, entity_a, entity_b, compute)

    async def timeline_proximity(self, entity_a: str, entity_b: str, graph_id: str) -> float:
        async def compute() -> float:
            shared, avg_distance = await self.graph_store.shared_timeline_stats(
                graph_id, entity_a, entity_b
            )
            if not shared:
                return 0.0
            event_score = normalize_feature(shared, 0, self.config.timeline_event_cap)
            if avg_distance > 0 and math.isfinite(avg_distance):
                proximity = 1 / (1 + math.log(avg_distance + 1))
            else:
                proximity = 1.0
            return event_score * 0.6 + proximity * 0.4

        return await self._cached(FeatureType.TIMELINE_PROXIMITY, entity_a, entity_b, compute)

    async def attribute_similarity(self, entity_a: str, entity_b: str) -> float:
        async def compute() -> float:
            first = await self.graph_store.get_entity(entity_a)
            second = await self.graph_store.get_entity(entity_b)
            if first is None or second is None:
                return 0.0
            return self._attribute_score(first, second)

        return await self._cached(FeatureType.ATTRIBUTE_SIMILARITY, entity_a, entity_b, compute)

    @staticmethod
    def _attribute_score(first: Entity, second: Entity) -> float:
        similarity = 0.0
        checks = 0

        if first.entity_type == second.entity_type:
            similarity += 0.3
        checks += 1

        if abs(first.importance - second.importance) <= 20:
            similarity += 0.2
        checks += 1

        return similarity / checks

    async def shared_location(self, entity_a: str, entity_b: str) -> float:
        async def compute() -> float:
            shared = await self.graph_store.count_shared_neighbors(
                entity_a,
                entity_b,
                "location",
                list(self.config.location_relationship_types),
            )
            return normalize_feature(shared, 0, self.config.shared_location_cap)

        return await self._cached(FeatureType.SHARED_LOCATION, entity_a, entity_b, compute)

    async def shared_faction(self, entity_a: str, entity_b: str) -> float:
        async def compute() -> float:
            shared = await self.graph_store.count_shared_neighbors(
                entity_a,
                entity_b,
                "faction",
                list(self.config.faction_relationship_types),
            )
            return 1.0 if shared > 0 else 0.0

        return await self._cached(FeatureType.SHARED_FACTION, entity_a, entity_b, compute)

    async def network_centrality(self, entity_a: str, entity_b: str, graph_id: str) -> float:
        async def compute() -> float:
            total = await self.graph_store.count_entities(graph_id)
            if not total:
                return 0.0
            degree_a = await self.graph_store.degree(entity_a)
            degree_b = await self.graph_store.degree(entity_b)
            return (normalize_feature(degree_a, 0, total) + normalize_feature(degree_b, 0, total)) / 2

        return await self._cached(FeatureType.NETWORK_CENTRALITY, entity_a, entity_b, compute)

    async def mention_frequency(self, entity_a: str, entity_b: str) -> float:
        async def compute() -> float:
            mentions = await self.graph_store.count_co_mentions(entity_a, entity_b)
            return normalize_feature(mentions, 0, self.config.mention_cap)

        return await self._cached(FeatureType.MENTION_FREQUENCY, entity_a, entity_b, compute)

    # ==========================================================================
    # Statistics
    # ==========================================================================

    async def feature_statistics(self, graph_id: str) -> dict[str, float]:
        """Graph-level counts that bound the feature values."""
        total_entities = await self.graph_store.count_entities(graph_id)
        total_relationships = await self.graph_store.count_relationships(graph_id)
        total_events = await self.graph_store.count_timeline_events(graph_id)

        avg_degree = 0.0
        if total_entities > 0:
            avg_degree = round(total_relationships * 2 / total_entities, 2)

        return {
            "total_entities": total_entities,
            "total_relationships": total_relationships,
            "total_timeline_events": total_events,
            "avg_entity_degree": avg_degree,
        }
