"""Feedback and learned weight models.

Feedback rows form an append-only event log: each records one human
decision together with the confidence and feature snapshot that were in
effect at the time, so weights can be replayed or rebuilt later.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from loreweave.errors import ValidationError
from loreweave.models.entity import parse_datetime
from loreweave.models.suggestion import (
    DEFAULT_WEIGHTS,
    FeatureType,
    RelationshipSuggestion,
    SuggestionStatus,
)

# {feature_type: {"value": float, "weight": float}}
FeatureSnapshot = dict[str, dict[str, float]]


class FeedbackAction(str, Enum):
    """Decision a user made on a suggestion."""

    ACCEPT = "accept"
    REJECT = "reject"
    MODIFY = "modify"
    DISMISS = "dismiss"

    @property
    def is_positive(self) -> bool:
        return self in (FeedbackAction.ACCEPT, FeedbackAction.MODIFY)

    @property
    def is_negative(self) -> bool:
        return self is FeedbackAction.REJECT

    @property
    def is_neutral(self) -> bool:
        return self is FeedbackAction.DISMISS


@dataclass(frozen=True)
class SuggestionFeedback:
    """One user decision against one suggestion. Immutable once written."""

    suggestion_id: str
    graph_id: str
    user_id: str
    action: FeedbackAction
    confidence_at_decision: float
    features_at_decision: FeatureSnapshot = field(default_factory=dict)
    modified_type: str | None = None
    modified_strength: int | None = None
    feedback_text: str | None = None
    time_to_decision_seconds: int = 0
    was_auto_accepted: bool = False
    id: str = field(default_factory=lambda: f"feedback-{uuid.uuid4()}")
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        if not 0 <= self.confidence_at_decision <= 100:
            raise ValidationError("Confidence must be between 0 and 100")
        if self.modified_strength is not None and not 0 <= self.modified_strength <= 100:
            raise ValidationError("Modified strength must be between 0 and 100")
        if self.time_to_decision_seconds < 0:
            raise ValidationError("Time to decision cannot be negative")

    @property
    def was_positive(self) -> bool:
        return self.action.is_positive

    @property
    def was_negative(self) -> bool:
        return self.action.is_negative

    @property
    def was_modified(self) -> bool:
        return self.action is FeedbackAction.MODIFY

    def decision_speed(self) -> str:
        if self.time_to_decision_seconds < 10:
            return "instant"
        if self.time_to_decision_seconds < 60:
            return "quick"
        if self.time_to_decision_seconds < 300:
            return "considered"
        return "slow"

    def confidence_appropriate(self) -> bool:
        """Whether the model's confidence matched the human verdict."""
        high = self.confidence_at_decision >= 75
        low = self.confidence_at_decision < 50

        if high and self.was_positive:
            return True
        if low and self.was_negative:
            return True
        # Medium confidence is never a mismatch
        return not high and not low

    def quality_score(self) -> float:
        score = 50.0
        score += 25 if self.confidence_appropriate() else -15

        if self.confidence_at_decision >= 80:
            score += {"instant": 15, "quick": 10, "considered": 5, "slow": 0}[
                self.decision_speed()
            ]
        if self.was_modified:
            score += 10
        if self.feedback_text and len(self.feedback_text) > 20:
            score += 10

        return max(0.0, min(100.0, score))

    def learning_value(self) -> float:
        """How much this decision should move the weights, 0-1."""
        value = 0.5

        # Confident mistakes in either direction teach the most
        if self.confidence_at_decision >= 90 and self.was_negative:
            value += 0.3
        elif self.confidence_at_decision <= 30 and self.was_positive:
            value += 0.3

        if self.was_modified:
            value += 0.2
        if self.features_at_decision:
            value += 0.1
        if not self.was_auto_accepted:
            value += 0.1

        return min(1.0, value)

    @classmethod
    def from_suggestion(
        cls,
        suggestion: RelationshipSuggestion,
        user_id: str,
        action: FeedbackAction,
        features: FeatureSnapshot,
        modified_type: str | None = None,
        modified_strength: int | None = None,
        feedback_text: str | None = None,
    ) -> "SuggestionFeedback":
        return cls(
            suggestion_id=suggestion.id,
            graph_id=suggestion.graph_id,
            user_id=user_id,
            action=action,
            confidence_at_decision=suggestion.confidence_score,
            features_at_decision=features,
            modified_type=modified_type,
            modified_strength=modified_strength,
            feedback_text=feedback_text,
            time_to_decision_seconds=suggestion.time_to_decision() or 0,
            was_auto_accepted=suggestion.status is SuggestionStatus.AUTO_ACCEPTED,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "suggestion_id": self.suggestion_id,
            "graph_id": self.graph_id,
            "user_id": self.user_id,
            "action": self.action.value,
            "modified_type": self.modified_type,
            "modified_strength": self.modified_strength,
            "feedback_text": self.feedback_text,
            "confidence_at_decision": self.confidence_at_decision,
            "features_at_decision": json.dumps(self.features_at_decision),
            "time_to_decision_seconds": self.time_to_decision_seconds,
            "was_auto_accepted": self.was_auto_accepted,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SuggestionFeedback":
        features = data.get("features_at_decision") or {}
        if isinstance(features, str):
            features = json.loads(features)
        return cls(
            id=data["id"],
            suggestion_id=data["suggestion_id"],
            graph_id=data["graph_id"],
            user_id=str(data["user_id"]),
            action=FeedbackAction(data["action"]),
            modified_type=data.get("modified_type"),
            modified_strength=data.get("modified_strength"),
            feedback_text=data.get("feedback_text"),
            confidence_at_decision=float(data["confidence_at_decision"]),
            features_at_decision=features,
            time_to_decision_seconds=int(data.get("time_to_decision_seconds") or 0),
            was_auto_accepted=bool(data.get("was_auto_accepted", False)),
            created_at=parse_datetime(data.get("created_at")) or datetime.utcnow(),
        )


@dataclass
class LearningWeight:
    """Learned weight of one feature type in one graph."""

    graph_id: str
    feature_type: FeatureType
    weight: float
    relationship_type: str | None = None  # None = applies to every type
    accuracy_score: float | None = None
    samples_count: int = 0
    last_updated: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        if not 0 <= self.weight <= 1:
            raise ValidationError(f"Weight must be between 0 and 1, got {self.weight:.4f}")

    def to_dict(self) -> dict:
        return {
            "graph_id": self.graph_id,
            "feature_type": self.feature_type.value,
            "relationship_type": self.relationship_type,
            "weight": self.weight,
            "accuracy_score": self.accuracy_score,
            "samples_count": self.samples_count,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LearningWeight":
        return cls(
            graph_id=data["graph_id"],
            feature_type=FeatureType(data["feature_type"]),
            weight=float(data["weight"]),
            relationship_type=data.get("relationship_type"),
            accuracy_score=data.get("accuracy_score"),
            samples_count=int(data.get("samples_count") or 0),
            last_updated=parse_datetime(data.get("last_updated")) or datetime.utcnow(),
        )


def weights_with_defaults(rows: list[LearningWeight]) -> dict[FeatureType, float]:
    """Default weight per feature type, overridden by learned rows."""
    weights = dict(DEFAULT_WEIGHTS)
    for row in rows:
        weights[row.feature_type] = row.weight
    return weights
