"""Relationship prediction: features, confidence, typing."""

from loreweave.prediction.config import (
    FeatureConfig,
    LearningConfig,
    PredictionConfig,
    SchedulerConfig,
    SuggestionConfig,
)
from loreweave.prediction.features import (
    FeatureExtractor,
    build_feature_snapshot,
    normalize_feature,
)
from loreweave.prediction.model import (
    RelationshipPredictor,
    calculate_confidence,
    calculate_priority,
    estimate_strength,
)
from loreweave.prediction.typing_rules import (
    DEFAULT_RULES,
    RuleCascade,
    TypeClassifier,
    TypeDecision,
    TypingContext,
    TypingRule,
)

__all__ = [
    "FeatureConfig",
    "PredictionConfig",
    "LearningConfig",
    "SchedulerConfig",
    "SuggestionConfig",
    "FeatureExtractor",
    "build_feature_snapshot",
    "normalize_feature",
    "RelationshipPredictor",
    "calculate_confidence",
    "calculate_priority",
    "estimate_strength",
    "DEFAULT_RULES",
    "RuleCascade",
    "TypeClassifier",
    "TypeDecision",
    "TypingContext",
    "TypingRule",
]
