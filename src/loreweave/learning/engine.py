"""Online weight learning from human feedback.

Feedback rows are an append-only event log. Weights are a fold over that
log: every decisive row (accepted or rejected at high confidence) pushes
each feature weight by error * feature_value, averaged per feature type,
scaled by the learning rate and clamped to [0, 1].
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any

from loreweave.errors import PersistenceError, SuggestionNotFoundError, ValidationError
from loreweave.learning.metrics import AccuracyMetrics, compute_metrics
from loreweave.models import (
    FeatureSnapshot,
    FeatureType,
    FeedbackAction,
    LearningWeight,
    SuggestionFeature,
    SuggestionFeedback,
    SuggestionStatus,
    weights_with_defaults,
)
from loreweave.prediction.config import LearningConfig
from loreweave.storage.base import EphemeralCache, SuggestionStore
from loreweave.storage.cache import MemoryCache

logger = logging.getLogger(__name__)


def feature_snapshot(features: list[SuggestionFeature]) -> FeatureSnapshot:
    return {
        feature.feature_type.value: {"value": feature.feature_value, "weight": feature.weight}
        for feature in features
    }


def calculate_adjustments(
    feedback: list[SuggestionFeedback],
    high_confidence_cutoff: float = 70.0,
) -> dict[FeatureType, float]:
    """Average gradient per feature type over the decisive feedback rows."""
    totals: dict[FeatureType, float] = defaultdict(float)
    counts: dict[FeatureType, int] = defaultdict(int)

    for row in feedback:
        if not row.features_at_decision:
            continue
        if row.confidence_at_decision < high_confidence_cutoff:
            continue
        if row.was_positive:
            error = 1.0
        elif row.was_negative:
            error = -1.0
        else:
            continue

        error *= row.learning_value()
        for feature_name, data in row.features_at_decision.items():
            try:
                feature_type = FeatureType(feature_name)
            except ValueError:
                logger.warning(f"Ignoring unknown feature type in feedback {row.id}: {feature_name}")
                continue
            totals[feature_type] += error * float(data.get("value", 0.0))
            counts[feature_type] += 1

    return {feature_type: totals[feature_type] / counts[feature_type] for feature_type in totals}


def replay_weights(
    feedback: list[SuggestionFeedback],
    base_weights: dict[FeatureType, float],
    config: LearningConfig | None = None,
) -> dict[FeatureType, float]:
    """Fold the feedback log into a new weight table. Pure function."""
    config = config or LearningConfig()
    weights = dict(base_weights)
    adjustments = calculate_adjustments(feedback, config.high_confidence_cutoff)
    for feature_type, adjustment in adjustments.items():
        current = weights.get(feature_type, feature_type.default_weight)
        weights[feature_type] = max(0.0, min(1.0, current + config.learning_rate * adjustment))
    return weights


class LearningEngine:
    """Records feedback and keeps each graph's feature weights up to date."""

    def __init__(
        self,
        suggestion_store: SuggestionStore,
        cache: EphemeralCache | None = None,
        config: LearningConfig | None = None,
    ) -> None:
        self.suggestion_store = suggestion_store
        self.cache = cache or MemoryCache()
        self.config = config or LearningConfig()

    @staticmethod
    def cooldown_key(graph_id: str) -> str:
        return f"learning:last_update:{graph_id}"

    # ==========================================================================
    # Feedback
    # ==========================================================================

    async def record_feedback(
        self,
        suggestion_id: str,
        action: FeedbackAction | str,
        user_id: str,
        modified_type: str | None = None,
        modified_strength: int | None = None,
        feedback_text: str | None = None,
        created_relationship_id: str | None = None,
    ) -> SuggestionFeedback:
        """Apply a user decision to a suggestion and append it to the feedback log."""
        try:
            action = FeedbackAction(action)
        except ValueError as e:
            raise ValidationError(f"Unknown feedback action: {action}") from e

        suggestion = await self.suggestion_store.get_suggestion(suggestion_id)
        if suggestion is None:
            raise SuggestionNotFoundError(suggestion_id)

        transitioned = False
        if suggestion.is_pending:
            if action is FeedbackAction.ACCEPT:
                suggestion.accept(user_id, created_relationship_id)
            elif action is FeedbackAction.REJECT:
                suggestion.reject(user_id, feedback_text)
            elif action is FeedbackAction.MODIFY:
                if not modified_type:
                    raise ValidationError("Modify feedback requires a relationship type")
                suggestion.modify(user_id, modified_type, modified_strength, created_relationship_id)
            else:
                suggestion.dismiss(user_id, feedback_text)
            transitioned = True
        elif suggestion.status is not SuggestionStatus.AUTO_ACCEPTED:
            raise ValidationError(
                f"Suggestion {suggestion_id} was already {suggestion.status.value}"
            )
        elif await self.suggestion_store.has_feedback(suggestion_id):
            raise ValidationError(f"Suggestion {suggestion_id} already has a recorded decision")

        features = await self.suggestion_store.get_features(suggestion_id)
        feedback = SuggestionFeedback.from_suggestion(
            suggestion=suggestion,
            user_id=user_id,
            action=action,
            features=feature_snapshot(features),
            modified_type=modified_type,
            modified_strength=modified_strength,
            feedback_text=feedback_text,
        )

        if transitioned:
            await self.suggestion_store.update_suggestion(suggestion)
        await self.suggestion_store.save_feedback(feedback)
        logger.info(f"Recorded {action.value} feedback for suggestion {suggestion_id}")

        await self.maybe_update_weights(suggestion.graph_id)
        return feedback

    # ==========================================================================
    # Weights
    # ==========================================================================

    async def maybe_update_weights(self, graph_id: str) -> bool:
        """Update weights when enough new feedback arrived and no cooldown is active."""
        if await self.cache.get(self.cooldown_key(graph_id)) is not None:
            logger.debug(f"Weight update for graph {graph_id} in cooldown")
            return False

        try:
            total = await self.suggestion_store.count_feedback(graph_id)
            rows = await self.suggestion_store.get_weights(graph_id)
            last_samples = max((row.samples_count for row in rows), default=0)
            if total - last_samples < self.config.min_samples:
                return False

            await self.update_weights(graph_id)
            await self.cache.set(
                self.cooldown_key(graph_id),
                datetime.utcnow().isoformat(),
                ttl=self.config.cooldown_seconds,
            )
        except PersistenceError as e:
            logger.error(f"Failed to update weights for graph {graph_id}: {e}")
            return False
        return True

    async def update_weights(self, graph_id: str) -> dict[FeatureType, float]:
        """Recompute and persist the graph's weights from its feedback log."""
        logger.info(f"Updating weights for graph {graph_id}")
        feedback = await self.suggestion_store.get_feedback_for_graph(graph_id)
        current = await self.get_optimal_weights(graph_id)

        if len(feedback) < self.config.min_samples:
            logger.info(f"Not enough feedback samples for graph {graph_id}")
            return current

        updated = replay_weights(feedback, current, self.config)
        now = datetime.utcnow()
        for feature_type, weight in updated.items():
            await self.suggestion_store.save_weight(
                LearningWeight(
                    graph_id=graph_id,
                    feature_type=feature_type,
                    weight=weight,
                    samples_count=len(feedback),
                    last_updated=now,
                )
            )
            if weight != current[feature_type]:
                logger.debug(
                    f"Updated {feature_type.value} weight: "
                    f"{current[feature_type]:.4f} -> {weight:.4f}"
                )

        metrics = await self.get_accuracy_metrics(graph_id)
        await self.suggestion_store.update_accuracy(graph_id, metrics.accuracy)
        logger.info(f"Learning complete for graph {graph_id}. Accuracy: {metrics.accuracy:.2f}%")
        return updated

    async def get_optimal_weights(
        self, graph_id: str, relationship_type: str | None = None
    ) -> dict[FeatureType, float]:
        """Learned weights overlaid on defaults; never empty."""
        rows = await self.suggestion_store.get_weights(graph_id, relationship_type)
        if relationship_type is not None and not rows:
            rows = await self.suggestion_store.get_weights(graph_id)
        return weights_with_defaults(rows)

    # ==========================================================================
    # Metrics
    # ==========================================================================

    async def get_accuracy_metrics(self, graph_id: str) -> AccuracyMetrics:
        suggestions = await self.suggestion_store.get_actioned(graph_id)
        return compute_metrics(suggestions, self.config.high_confidence_cutoff)

    async def predict_accuracy_improvement(self, graph_id: str) -> float:
        """Expected accuracy gain from more feedback, with diminishing returns."""
        metrics = await self.get_accuracy_metrics(graph_id)
        samples = metrics.total_samples
        if samples < self.config.min_samples:
            return 20.0
        return round((100 - metrics.accuracy) / (1 + samples / 20), 2)

    async def reset_learning(self, graph_id: str) -> bool:
        """Drop learned weights; feedback history is kept."""
        logger.info(f"Resetting learning data for graph {graph_id}")
        try:
            deleted = await self.suggestion_store.reset_weights(graph_id)
            await self.cache.delete(self.cooldown_key(graph_id))
        except PersistenceError as e:
            logger.error(f"Failed to reset learning for graph {graph_id}: {e}")
            return False
        logger.debug(f"Deleted {deleted} weight rows for graph {graph_id}")
        return True

    async def get_learning_statistics(self, graph_id: str) -> dict[str, Any]:
        metrics = await self.get_accuracy_metrics(graph_id)
        weights = await self.get_optimal_weights(graph_id)
        improvement = await self.predict_accuracy_improvement(graph_id)
        suggestions = await self.suggestion_store.get_statistics(graph_id)
        return {
            "suggestions": suggestions,
            "accuracy_metrics": metrics.to_dict(),
            "feature_weights": {ft.value: weight for ft, weight in weights.items()},
            "predicted_improvement": improvement,
            "is_learning_active": metrics.total_samples >= self.config.min_samples,
            "samples_needed": max(0, self.config.min_samples - metrics.total_samples),
        }
