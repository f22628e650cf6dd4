"""Loreweave data models."""

from loreweave.models.entity import Entity, EntityType
from loreweave.models.feedback import (
    FeatureSnapshot,
    FeedbackAction,
    LearningWeight,
    SuggestionFeedback,
    weights_with_defaults,
)
from loreweave.models.suggestion import (
    DEFAULT_WEIGHTS,
    EvidenceItem,
    FeatureType,
    RelationshipSuggestion,
    SuggestionFeature,
    SuggestionMethod,
    SuggestionStatus,
    UserActionType,
    pair_key,
)

__all__ = [
    "Entity",
    "EntityType",
    "FeatureType",
    "DEFAULT_WEIGHTS",
    "EvidenceItem",
    "RelationshipSuggestion",
    "SuggestionFeature",
    "SuggestionMethod",
    "SuggestionStatus",
    "UserActionType",
    "pair_key",
    "FeatureSnapshot",
    "FeedbackAction",
    "SuggestionFeedback",
    "LearningWeight",
    "weights_with_defaults",
]
