"""Unit tests for the learning engine and accuracy metrics."""

from unittest.mock import AsyncMock

import pytest

from loreweave.errors import PersistenceError, SuggestionNotFoundError, ValidationError
from loreweave.learning import (
    AccuracyMetrics,
    LearningEngine,
    calculate_adjustments,
    compute_metrics,
    replay_weights,
)
from loreweave.models import (
    DEFAULT_WEIGHTS,
    FeatureType,
    FeedbackAction,
    SuggestionFeedback,
    SuggestionStatus,
)
from loreweave.prediction import LearningConfig

STRONG_FEATURES = {
    FeatureType.CO_OCCURRENCE: 0.8,
    FeatureType.SHARED_FACTION: 1.0,
}


def feedback_row(action: FeedbackAction, confidence: float = 80.0, **features: float) -> SuggestionFeedback:
    return SuggestionFeedback(
        suggestion_id="s-1",
        graph_id="graph-1",
        user_id="user-1",
        action=action,
        confidence_at_decision=confidence,
        features_at_decision={
            name: {"value": value, "weight": 0.5} for name, value in features.items()
        },
    )


class TestAccuracyMetrics:
    """Tests for confusion-matrix metrics."""

    def test_empty(self) -> None:
        metrics = AccuracyMetrics()
        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.f1_score == 0.0
        assert metrics.accuracy == 0.0

    def test_rates(self) -> None:
        metrics = AccuracyMetrics(
            true_positives=6, false_positives=2, true_negatives=1, false_negatives=1
        )
        assert metrics.total_samples == 10
        assert metrics.precision == 75.0
        assert metrics.recall == pytest.approx(85.71)
        assert metrics.f1_score == 80.0
        assert metrics.accuracy == 70.0

    def test_compute_metrics(self, make_suggestion) -> None:
        accepted_high = make_suggestion(confidence=85.0)
        accepted_high.accept("u")
        rejected_high = make_suggestion(confidence=75.0)
        rejected_high.reject("u")
        rejected_low = make_suggestion(confidence=40.0)
        rejected_low.reject("u")
        modified_low = make_suggestion(confidence=50.0)
        modified_low.modify("u", "family")
        dismissed = make_suggestion(confidence=90.0)
        dismissed.dismiss("u")
        pending = make_suggestion(confidence=90.0)

        metrics = compute_metrics(
            [accepted_high, rejected_high, rejected_low, modified_low, dismissed, pending]
        )

        assert metrics.true_positives == 1
        assert metrics.false_positives == 1
        assert metrics.true_negatives == 1
        assert metrics.false_negatives == 1

    def test_auto_accepted_counts_positive(self, make_suggestion) -> None:
        auto = make_suggestion(confidence=97.0, status=SuggestionStatus.AUTO_ACCEPTED)
        assert compute_metrics([auto]).true_positives == 1


class TestWeightReplay:
    """Tests for the pure weight update functions."""

    def test_positive_feedback_raises_weights(self) -> None:
        rows = [feedback_row(FeedbackAction.ACCEPT, co_occurrence=0.8)]
        adjustments = calculate_adjustments(rows)
        # learning value 0.5 + 0.1 (features) + 0.1 (human)
        assert adjustments[FeatureType.CO_OCCURRENCE] == pytest.approx(0.7 * 0.8)

    def test_negative_feedback_lowers_weights(self) -> None:
        rows = [feedback_row(FeedbackAction.REJECT, co_occurrence=0.5)]
        weights = replay_weights(rows, dict(DEFAULT_WEIGHTS))
        assert weights[FeatureType.CO_OCCURRENCE] < DEFAULT_WEIGHTS[FeatureType.CO_OCCURRENCE]

    def test_low_confidence_and_dismiss_ignored(self) -> None:
        rows = [
            feedback_row(FeedbackAction.ACCEPT, confidence=50.0, co_occurrence=0.9),
            feedback_row(FeedbackAction.DISMISS, co_occurrence=0.9),
            feedback_row(FeedbackAction.ACCEPT),
        ]
        assert calculate_adjustments(rows) == {}

    def test_averaged_per_feature(self) -> None:
        rows = [
            feedback_row(FeedbackAction.ACCEPT, co_occurrence=1.0),
            feedback_row(FeedbackAction.REJECT, co_occurrence=1.0),
        ]
        assert calculate_adjustments(rows)[FeatureType.CO_OCCURRENCE] == pytest.approx(0.0)

    def test_unknown_feature_ignored(self) -> None:
        row = SuggestionFeedback(
            suggestion_id="s-1",
            graph_id="graph-1",
            user_id="user-1",
            action=FeedbackAction.ACCEPT,
            confidence_at_decision=80.0,
            features_at_decision={"sentiment": {"value": 0.9, "weight": 0.5}},
        )
        assert calculate_adjustments([row]) == {}

    def test_weights_clamped(self) -> None:
        rows = [feedback_row(FeedbackAction.ACCEPT, shared_faction=1.0)]
        weights = replay_weights(
            rows,
            {FeatureType.SHARED_FACTION: 0.99},
            LearningConfig(learning_rate=1.0),
        )
        assert weights[FeatureType.SHARED_FACTION] == 1.0

    def test_deterministic(self) -> None:
        rows = [
            feedback_row(FeedbackAction.ACCEPT, co_occurrence=0.8, shared_faction=1.0),
            feedback_row(FeedbackAction.REJECT, co_occurrence=0.3),
        ]
        assert replay_weights(rows, dict(DEFAULT_WEIGHTS)) == replay_weights(
            rows, dict(DEFAULT_WEIGHTS)
        )


class TestLearningEngine:
    """Tests for LearningEngine with the in-memory suggestion store."""

    @pytest.fixture
    def engine(self, suggestion_store, memory_cache) -> LearningEngine:
        return LearningEngine(suggestion_store, memory_cache)

    @pytest.fixture
    def pending(self, suggestion_store, make_suggestion):
        """Six pending high-confidence suggestions with feature snapshots."""
        return [
            suggestion_store.add(make_suggestion(confidence=80.0), STRONG_FEATURES)
            for _ in range(6)
        ]

    @pytest.mark.asyncio
    async def test_accept(self, engine, suggestion_store, pending) -> None:
        feedback = await engine.record_feedback(pending[0].id, "accept", "user-1")

        stored = await suggestion_store.get_suggestion(pending[0].id)
        assert stored.status is SuggestionStatus.ACCEPTED
        assert feedback.action is FeedbackAction.ACCEPT
        assert feedback.confidence_at_decision == 80.0
        assert feedback.features_at_decision["co_occurrence"] == {"value": 0.8, "weight": 0.7}
        assert suggestion_store.feedback == [feedback]

    @pytest.mark.asyncio
    async def test_modify(self, engine, suggestion_store, pending) -> None:
        await engine.record_feedback(
            pending[0].id,
            FeedbackAction.MODIFY,
            "user-1",
            modified_type="family",
            modified_strength=85,
        )

        stored = await suggestion_store.get_suggestion(pending[0].id)
        assert stored.status is SuggestionStatus.MODIFIED
        assert stored.suggested_type == "family"
        assert stored.strength == 85

    @pytest.mark.asyncio
    async def test_modify_requires_type(self, engine, suggestion_store, pending) -> None:
        with pytest.raises(ValidationError):
            await engine.record_feedback(pending[0].id, "modify", "user-1")
        assert suggestion_store.feedback == []

    @pytest.mark.asyncio
    async def test_unknown_action(self, engine, pending) -> None:
        with pytest.raises(ValidationError):
            await engine.record_feedback(pending[0].id, "approve", "user-1")

    @pytest.mark.asyncio
    async def test_unknown_suggestion(self, engine) -> None:
        with pytest.raises(SuggestionNotFoundError):
            await engine.record_feedback("suggestion-missing", "accept", "user-1")

    @pytest.mark.asyncio
    async def test_second_decision_rejected(self, engine, suggestion_store, pending) -> None:
        await engine.record_feedback(pending[0].id, "accept", "user-1")

        with pytest.raises(ValidationError):
            await engine.record_feedback(pending[0].id, "reject", "user-2")

        stored = await suggestion_store.get_suggestion(pending[0].id)
        assert stored.status is SuggestionStatus.ACCEPTED
        assert len(suggestion_store.feedback) == 1

    @pytest.mark.asyncio
    async def test_feedback_on_auto_accepted(
        self, engine, suggestion_store, make_suggestion
    ) -> None:
        auto = suggestion_store.add(
            make_suggestion(confidence=97.0, status=SuggestionStatus.AUTO_ACCEPTED),
            STRONG_FEATURES,
        )

        feedback = await engine.record_feedback(auto.id, "reject", "user-1")

        stored = await suggestion_store.get_suggestion(auto.id)
        assert stored.status is SuggestionStatus.AUTO_ACCEPTED
        assert feedback.was_auto_accepted
        assert feedback.was_negative

    @pytest.mark.asyncio
    async def test_auto_accepted_takes_one_decision(
        self, engine, suggestion_store, make_suggestion
    ) -> None:
        auto = suggestion_store.add(
            make_suggestion(confidence=97.0, status=SuggestionStatus.AUTO_ACCEPTED),
            STRONG_FEATURES,
        )
        await engine.record_feedback(auto.id, "reject", "user-1")

        for _ in range(4):
            with pytest.raises(ValidationError):
                await engine.record_feedback(auto.id, "reject", "user-1")

        assert len(suggestion_store.feedback) == 1
        assert await engine.maybe_update_weights("graph-1") is False
        assert suggestion_store.weights == {}

    @pytest.mark.asyncio
    async def test_no_update_below_min_samples(self, engine, suggestion_store, pending) -> None:
        for suggestion in pending[:4]:
            await engine.record_feedback(suggestion.id, "accept", "user-1")

        assert suggestion_store.weights == {}
        assert await engine.get_optimal_weights("graph-1") == DEFAULT_WEIGHTS

    @pytest.mark.asyncio
    async def test_update_on_fifth_feedback(self, engine, suggestion_store, pending) -> None:
        for suggestion in pending[:5]:
            await engine.record_feedback(suggestion.id, "accept", "user-1")

        weights = await engine.get_optimal_weights("graph-1")
        # 0.7 + 0.1 * (0.7 learning value * 0.8 feature value)
        assert weights[FeatureType.CO_OCCURRENCE] == pytest.approx(0.756)
        assert weights[FeatureType.SHARED_FACTION] == pytest.approx(0.77)
        assert weights[FeatureType.NETWORK_CENTRALITY] == DEFAULT_WEIGHTS[FeatureType.NETWORK_CENTRALITY]

        rows = await suggestion_store.get_weights("graph-1")
        assert len(rows) == len(FeatureType)
        assert all(row.samples_count == 5 for row in rows)
        assert all(row.accuracy_score == 100.0 for row in rows)

    @pytest.mark.asyncio
    async def test_cooldown_blocks_next_update(
        self, engine, suggestion_store, memory_cache, pending
    ) -> None:
        for suggestion in pending[:5]:
            await engine.record_feedback(suggestion.id, "accept", "user-1")
        assert await memory_cache.get(engine.cooldown_key("graph-1")) is not None

        engine.update_weights = AsyncMock()
        await engine.record_feedback(pending[5].id, "accept", "user-1")

        engine.update_weights.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_maybe_update_counts_new_feedback_only(
        self, engine, suggestion_store, memory_cache, pending
    ) -> None:
        for suggestion in pending[:5]:
            await engine.record_feedback(suggestion.id, "accept", "user-1")
        await memory_cache.delete(engine.cooldown_key("graph-1"))

        # Only one new row since the last update
        await engine.record_feedback(pending[5].id, "accept", "user-1")

        rows = await suggestion_store.get_weights("graph-1")
        assert all(row.samples_count == 5 for row in rows)

    @pytest.mark.asyncio
    async def test_update_weights_needs_min_samples(self, engine, suggestion_store, pending) -> None:
        await engine.record_feedback(pending[0].id, "accept", "user-1")

        weights = await engine.update_weights("graph-1")

        assert weights == DEFAULT_WEIGHTS
        assert suggestion_store.weights == {}

    @pytest.mark.asyncio
    async def test_maybe_update_persistence_error(self, engine, suggestion_store) -> None:
        suggestion_store.count_feedback = AsyncMock(side_effect=PersistenceError("down"))
        assert await engine.maybe_update_weights("graph-1") is False

    @pytest.mark.asyncio
    async def test_reset_learning(self, engine, suggestion_store, memory_cache, pending) -> None:
        for suggestion in pending[:5]:
            await engine.record_feedback(suggestion.id, "accept", "user-1")

        assert await engine.reset_learning("graph-1") is True

        assert await engine.get_optimal_weights("graph-1") == DEFAULT_WEIGHTS
        assert await memory_cache.get(engine.cooldown_key("graph-1")) is None
        # Feedback history survives a reset
        assert await suggestion_store.count_feedback("graph-1") == 5

    @pytest.mark.asyncio
    async def test_reset_learning_failure(self, engine, suggestion_store) -> None:
        suggestion_store.reset_weights = AsyncMock(side_effect=PersistenceError("down"))
        assert await engine.reset_learning("graph-1") is False

    @pytest.mark.asyncio
    async def test_weights_for_relationship_type_fall_back(self, engine, suggestion_store, pending) -> None:
        for suggestion in pending[:5]:
            await engine.record_feedback(suggestion.id, "accept", "user-1")

        graph_wide = await engine.get_optimal_weights("graph-1")
        assert await engine.get_optimal_weights("graph-1", "mentor") == graph_wide

    @pytest.mark.asyncio
    async def test_learning_statistics(self, engine, pending) -> None:
        await engine.record_feedback(pending[0].id, "accept", "user-1")
        await engine.record_feedback(pending[1].id, "reject", "user-1")

        stats = await engine.get_learning_statistics("graph-1")

        assert stats["accuracy_metrics"]["true_positives"] == 1
        assert stats["accuracy_metrics"]["false_positives"] == 1
        assert stats["is_learning_active"] is False
        assert stats["samples_needed"] == 3
        assert stats["predicted_improvement"] == 20.0
        assert stats["feature_weights"]["co_occurrence"] == 0.7
        assert stats["suggestions"]["accepted"] == 1
        assert stats["suggestions"]["rejected"] == 1
        assert stats["suggestions"]["pending"] == 4

    @pytest.mark.asyncio
    async def test_predicted_improvement_diminishes(self, engine, pending) -> None:
        for suggestion in pending[:5]:
            await engine.record_feedback(suggestion.id, "reject", "user-1")

        # Accuracy 0% over 5 samples: 100 / (1 + 5 / 20)
        assert await engine.predict_accuracy_improvement("graph-1") == 80.0
