"""Confidence and typing model for relationship suggestions.

Combines the feature vector of an entity pair with the graph's learned
weights into a confidence score, then types the relationship, estimates
its strength and explains it.

Confidence = 100 * sum(value * weight) / sum(weight)
"""

import logging
from dataclasses import dataclass

from loreweave.errors import (
    ComputationError,
    EntityNotFoundError,
    InvalidPairError,
    PersistenceError,
)
from loreweave.models import (
    DEFAULT_WEIGHTS,
    Entity,
    EvidenceItem,
    FeatureType,
    RelationshipSuggestion,
    SuggestionMethod,
    SuggestionStatus,
    weights_with_defaults,
)
from loreweave.prediction.config import PredictionConfig
from loreweave.prediction.features import FeatureExtractor, build_feature_snapshot
from loreweave.prediction.typing_rules import (
    RuleCascade,
    TypeClassifier,
    TypeDecision,
    TypingContext,
)
from loreweave.storage.base import GraphStore, SuggestionStore

logger = logging.getLogger(__name__)

METHOD_BOOST = {
    SuggestionMethod.HYBRID: 10,
    SuggestionMethod.SEMANTIC: 5,
    SuggestionMethod.CONTENT: 3,
    SuggestionMethod.TIMELINE: 2,
    SuggestionMethod.ATTRIBUTE: 1,
}

KEY_TYPES = frozenset({"family", "mentor", "enemy", "ally"})

REASON_TEMPLATES = {
    FeatureType.CO_OCCURRENCE: "appear together frequently in content ({pct:.0f}%)",
    FeatureType.TIMELINE_PROXIMITY: "are close in timeline events ({pct:.0f}%)",
    FeatureType.SHARED_FACTION: "belong to the same faction",
    FeatureType.SHARED_LOCATION: "share common locations",
    FeatureType.ATTRIBUTE_SIMILARITY: "have similar attributes ({pct:.0f}%)",
}

METHOD_BY_FEATURE = {
    FeatureType.TIMELINE_PROXIMITY: SuggestionMethod.TIMELINE,
    FeatureType.ATTRIBUTE_SIMILARITY: SuggestionMethod.ATTRIBUTE,
    FeatureType.SHARED_LOCATION: SuggestionMethod.ATTRIBUTE,
    FeatureType.SHARED_FACTION: SuggestionMethod.ATTRIBUTE,
}


def calculate_confidence(
    features: dict[FeatureType, float],
    weights: dict[FeatureType, float],
) -> float:
    """Weighted mean of the present features, scaled to 0-100."""
    weighted_sum = 0.0
    total_weight = 0.0
    for feature_type, value in features.items():
        weight = weights.get(feature_type, DEFAULT_WEIGHTS[feature_type])
        weighted_sum += value * weight
        total_weight += weight

    if total_weight <= 0:
        return 0.0

    confidence = weighted_sum / total_weight * 100
    return round(max(0.0, min(100.0, confidence)), 2)


def estimate_strength(features: dict[FeatureType, float]) -> int:
    """Mean of the three strongest features as 0-100."""
    if not features:
        return 50
    top = sorted(features.values(), reverse=True)[:3]
    return int(round(sum(top) / len(top) * 100))


def top_features(
    features: dict[FeatureType, float], count: int = 3
) -> list[tuple[FeatureType, float]]:
    return sorted(features.items(), key=lambda item: item[1], reverse=True)[:count]


def generate_reasoning(
    source: Entity,
    target: Entity,
    features: dict[FeatureType, float],
    rel_type: str,
    threshold: float = 0.6,
) -> str:
    reasons = []
    for feature_type, value in top_features(features):
        template = REASON_TEMPLATES.get(feature_type)
        if value >= threshold and template:
            reasons.append(template.format(pct=value * 100))

    if not reasons:
        return f"{source.name} and {target.name} may be connected as {rel_type}"
    return (
        f"{source.name} and {target.name} {', '.join(reasons)}, "
        f"suggesting a {rel_type} relationship"
    )


def gather_evidence(
    features: dict[FeatureType, float], threshold: float = 0.5
) -> list[EvidenceItem]:
    return [
        EvidenceItem(
            feature_type=feature_type,
            value=value,
            description=feature_type.value.replace("_", " ").title(),
        )
        for feature_type, value in features.items()
        if value >= threshold
    ]


def determine_method(
    features: dict[FeatureType, float],
    decision: TypeDecision | None = None,
    high_value: float = 0.7,
    hybrid_min_features: int = 3,
) -> SuggestionMethod:
    high_count = sum(1 for value in features.values() if value >= high_value)
    if high_count >= hybrid_min_features:
        return SuggestionMethod.HYBRID
    if decision is not None and decision.used_classifier:
        return SuggestionMethod.SEMANTIC
    if not features:
        return SuggestionMethod.CONTENT
    strongest = max(features.items(), key=lambda item: item[1])[0]
    return METHOD_BY_FEATURE.get(strongest, SuggestionMethod.CONTENT)


def calculate_priority(
    confidence: float,
    strength: int,
    method: SuggestionMethod,
    rel_type: str,
) -> float:
    """Display ordering score; non-decreasing in confidence and strength."""
    score = confidence + strength / 10 + METHOD_BOOST[method]
    if rel_type.lower() in KEY_TYPES:
        score += 5
    return round(min(score, 100.0), 2)


@dataclass
class Prediction:
    """A suggestion together with the inputs it was computed from."""

    suggestion: RelationshipSuggestion
    features: dict[FeatureType, float]
    weights: dict[FeatureType, float]


class RelationshipPredictor:
    """Turns entity pairs into scored, typed relationship suggestions."""

    def __init__(
        self,
        graph_store: GraphStore,
        suggestion_store: SuggestionStore,
        feature_extractor: FeatureExtractor,
        config: PredictionConfig | None = None,
        classifier: TypeClassifier | None = None,
        cascade: RuleCascade | None = None,
    ) -> None:
        self.graph_store = graph_store
        self.suggestion_store = suggestion_store
        self.feature_extractor = feature_extractor
        self.config = config or PredictionConfig()
        self.classifier = classifier
        self.cascade = cascade or RuleCascade()

    async def current_weights(self, graph_id: str) -> dict[FeatureType, float]:
        rows = await self.suggestion_store.get_weights(graph_id)
        return weights_with_defaults(rows)

    async def already_linked(self, entity_a: str, entity_b: str) -> bool:
        """True when the pair already has a suggestion (any status) or an edge."""
        if await self.suggestion_store.find_by_pair(entity_a, entity_b):
            return True
        return await self.graph_store.edge_exists(entity_a, entity_b)

    async def _require_entity(self, entity_id: str, graph_id: str) -> Entity:
        entity = await self.graph_store.get_entity(entity_id)
        if entity is None or entity.graph_id != graph_id:
            raise EntityNotFoundError(entity_id, graph_id)
        return entity

    async def _predict(
        self, entity_a: str, entity_b: str, graph_id: str
    ) -> Prediction | None:
        if entity_a == entity_b:
            raise InvalidPairError(entity_a)

        source = await self._require_entity(entity_a, graph_id)
        target = await self._require_entity(entity_b, graph_id)

        if await self.already_linked(entity_a, entity_b):
            logger.debug(f"Pair {entity_a}-{entity_b} already linked, skipping")
            return None

        features = await self.feature_extractor.extract(entity_a, entity_b, graph_id)
        weights = await self.current_weights(graph_id)
        suggestion = await self.build_suggestion(source, target, graph_id, features, weights)
        if suggestion is None:
            return None
        return Prediction(suggestion=suggestion, features=features, weights=weights)

    async def build_suggestion(
        self,
        source: Entity,
        target: Entity,
        graph_id: str,
        features: dict[FeatureType, float],
        weights: dict[FeatureType, float],
    ) -> RelationshipSuggestion | None:
        """Score and type a pair whose features are known. None under the minimum confidence."""
        confidence = calculate_confidence(features, weights)
        if confidence < self.config.min_confidence:
            logger.debug(
                f"Confidence {confidence:.2f} for {source.id}-{target.id} below minimum"
            )
            return None

        decision = await self.cascade.resolve(
            TypingContext(source=source, target=target, features=features),
            self.classifier,
        )
        strength = estimate_strength(features)
        method = determine_method(
            features,
            decision,
            high_value=self.config.hybrid_threshold,
            hybrid_min_features=self.config.hybrid_min_features,
        )
        status = (
            SuggestionStatus.AUTO_ACCEPTED
            if confidence >= self.config.auto_accept_threshold
            else SuggestionStatus.PENDING
        )
        ai_model = "rule_based"
        if decision.used_classifier:
            ai_model = getattr(self.classifier, "model_name", "classifier")

        return RelationshipSuggestion(
            graph_id=graph_id,
            source_entity_id=source.id,
            target_entity_id=target.id,
            suggested_type=decision.rel_type,
            confidence_score=confidence,
            strength=strength,
            reasoning=generate_reasoning(
                source, target, features, decision.rel_type, self.config.reasoning_threshold
            ),
            evidence=gather_evidence(features, self.config.evidence_threshold),
            suggestion_method=method,
            ai_model=ai_model,
            status=status,
            priority_score=calculate_priority(confidence, strength, method, decision.rel_type),
        )

    async def predict(
        self, entity_a: str, entity_b: str, graph_id: str
    ) -> RelationshipSuggestion | None:
        """Suggestion for one pair, not persisted. None when skipped or too weak."""
        prediction = await self._predict(entity_a, entity_b, graph_id)
        return prediction.suggestion if prediction else None

    async def generate_suggestion(
        self, entity_a: str, entity_b: str, graph_id: str
    ) -> RelationshipSuggestion | None:
        """Predict and persist one pair with its feature snapshot."""
        prediction = await self._predict(entity_a, entity_b, graph_id)
        if prediction is None:
            return None

        suggestion = prediction.suggestion
        # Re-check right before insert; another job may have written the pair meanwhile
        if await self.suggestion_store.find_by_pair(entity_a, entity_b):
            logger.debug(f"Pair {entity_a}-{entity_b} suggested concurrently, skipping")
            return None

        snapshot = build_feature_snapshot(suggestion.id, prediction.features, prediction.weights)
        created = await self.suggestion_store.create_suggestion(suggestion, snapshot)
        if not created:
            return None

        logger.info(
            f"Suggested {suggestion.suggested_type} between {entity_a} and {entity_b} "
            f"({suggestion.confidence_score:.1f}%, {suggestion.status.value})"
        )
        return suggestion

    async def predict_for_graph(
        self, graph_id: str, limit: int = 50
    ) -> list[RelationshipSuggestion]:
        """Suggestions across the most important entities of a graph, best first."""
        logger.info(f"Starting relationship prediction for graph {graph_id}")
        entities = await self.graph_store.get_entities(
            graph_id, limit=self.config.max_graph_entities
        )
        if not entities:
            logger.info(f"No entities found for graph {graph_id}")
            return []

        suggestions: list[RelationshipSuggestion] = []
        pairs_analyzed = 0
        for i, first in enumerate(entities):
            for second in entities[i + 1:]:
                pairs_analyzed += 1
                try:
                    suggestion = await self.predict(first.id, second.id, graph_id)
                except (ComputationError, PersistenceError) as e:
                    logger.warning(f"Failed to predict for pair {first.id}-{second.id}: {e}")
                    continue
                if suggestion is not None:
                    suggestions.append(suggestion)
                    if len(suggestions) >= limit:
                        break
            if len(suggestions) >= limit:
                break

        suggestions.sort(key=lambda s: s.priority_score, reverse=True)
        logger.info(
            f"Generated {len(suggestions)} suggestions from {pairs_analyzed} pairs "
            f"in graph {graph_id}"
        )
        return suggestions[:limit]

    async def predict_for_entity(
        self, entity_id: str, graph_id: str, limit: int = 10
    ) -> list[RelationshipSuggestion]:
        """Suggestions linking one entity to the most important others."""
        await self._require_entity(entity_id, graph_id)
        entities = await self.graph_store.get_entities(
            graph_id, limit=self.config.max_entity_candidates + 1
        )
        candidates = [e for e in entities if e.id != entity_id][: self.config.max_entity_candidates]

        suggestions: list[RelationshipSuggestion] = []
        for other in candidates:
            try:
                suggestion = await self.predict(entity_id, other.id, graph_id)
            except (ComputationError, PersistenceError) as e:
                logger.warning(f"Failed to predict for entity {entity_id}-{other.id}: {e}")
                continue
            if suggestion is not None:
                suggestions.append(suggestion)

        suggestions.sort(key=lambda s: s.priority_score, reverse=True)
        return suggestions[:limit]

    async def prediction_statistics(self, graph_id: str) -> dict[str, float]:
        """How much of the possible pair space is linked or suggested."""
        total_entities = await self.graph_store.count_entities(graph_id)
        possible_pairs = total_entities * (total_entities - 1) // 2
        existing = await self.graph_store.count_relationships(graph_id)
        pending = await self.suggestion_store.count_pending(graph_id)

        coverage = 0.0
        if possible_pairs > 0:
            coverage = round((existing + pending) / possible_pairs * 100, 2)

        return {
            "total_entities": total_entities,
            "possible_pairs": possible_pairs,
            "existing_relationships": existing,
            "pending_suggestions": pending,
            "coverage_percent": coverage,
        }
