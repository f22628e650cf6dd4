"""Relationship suggestion models - proposed edges and their feature snapshots."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from loreweave.errors import InvalidPairError, ValidationError
from loreweave.models.entity import parse_datetime


class FeatureType(str, Enum):
    """Signals computed for an entity pair."""

    CO_OCCURRENCE = "co_occurrence"
    TIMELINE_PROXIMITY = "timeline_proximity"
    ATTRIBUTE_SIMILARITY = "attribute_similarity"
    SHARED_LOCATION = "shared_location"
    SHARED_FACTION = "shared_faction"
    NETWORK_CENTRALITY = "network_centrality"
    MENTION_FREQUENCY = "mention_frequency"

    @property
    def description(self) -> str:
        return _FEATURE_DESCRIPTIONS[self]

    @property
    def default_weight(self) -> float:
        return DEFAULT_WEIGHTS[self]


_FEATURE_DESCRIPTIONS = {
    FeatureType.CO_OCCURRENCE: "How often entities appear together",
    FeatureType.TIMELINE_PROXIMITY: "Timeline distance between entities",
    FeatureType.ATTRIBUTE_SIMILARITY: "Similarity of entity attributes",
    FeatureType.SHARED_LOCATION: "Common locations",
    FeatureType.SHARED_FACTION: "Same faction membership",
    FeatureType.NETWORK_CENTRALITY: "Centrality in relationship graph",
    FeatureType.MENTION_FREQUENCY: "Co-mention frequency",
}

DEFAULT_WEIGHTS: dict[FeatureType, float] = {
    FeatureType.CO_OCCURRENCE: 0.7,
    FeatureType.TIMELINE_PROXIMITY: 0.6,
    FeatureType.ATTRIBUTE_SIMILARITY: 0.5,
    FeatureType.SHARED_LOCATION: 0.5,
    FeatureType.SHARED_FACTION: 0.7,
    FeatureType.NETWORK_CENTRALITY: 0.4,
    FeatureType.MENTION_FREQUENCY: 0.6,
}


class SuggestionStatus(str, Enum):
    """Lifecycle of a suggestion. Everything but PENDING is terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MODIFIED = "modified"
    AUTO_ACCEPTED = "auto_accepted"

    @property
    def is_actioned(self) -> bool:
        return self is not SuggestionStatus.PENDING

    @property
    def is_positive(self) -> bool:
        return self in (
            SuggestionStatus.ACCEPTED,
            SuggestionStatus.MODIFIED,
            SuggestionStatus.AUTO_ACCEPTED,
        )


class UserActionType(str, Enum):
    """Human action taken on a suggestion."""

    NONE = "none"
    ACCEPT = "accept"
    REJECT = "reject"
    MODIFY = "modify"
    DISMISS = "dismiss"


class SuggestionMethod(str, Enum):
    """Which signals produced the suggestion."""

    CONTENT = "content"
    TIMELINE = "timeline"
    ATTRIBUTE = "attribute"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


def pair_key(entity_a: str, entity_b: str) -> str:
    """Order-independent key for an entity pair."""
    first, second = sorted((str(entity_a), str(entity_b)))
    return f"{first}|{second}"


@dataclass
class EvidenceItem:
    """One supporting signal shown next to a suggestion."""

    feature_type: FeatureType
    value: float
    description: str

    def to_dict(self) -> dict:
        return {
            "type": self.feature_type.value,
            "value": self.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EvidenceItem":
        return cls(
            feature_type=FeatureType(data["type"]),
            value=float(data["value"]),
            description=data.get("description", ""),
        )


@dataclass
class RelationshipSuggestion:
    """
    A proposed, not-yet-confirmed relationship between two entities.

    Example: Luke --ally--> Leia (confidence 82.5, strength 74)
    """

    graph_id: str
    source_entity_id: str
    target_entity_id: str
    suggested_type: str
    confidence_score: float  # 0-100
    strength: int = 50  # 0-100
    reasoning: str | None = None
    evidence: list[EvidenceItem] = field(default_factory=list)
    suggestion_method: SuggestionMethod = SuggestionMethod.CONTENT
    ai_model: str = "rule_based"
    status: SuggestionStatus = SuggestionStatus.PENDING
    user_action_type: UserActionType = UserActionType.NONE
    user_feedback_text: str | None = None
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    actioned_by: str | None = None
    created_relationship_id: str | None = None
    priority_score: float = 50.0  # 0-100, display ordering only
    id: str = field(default_factory=lambda: f"suggestion-{uuid.uuid4()}")
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        if self.source_entity_id == self.target_entity_id:
            raise InvalidPairError(self.source_entity_id)
        if not 0 <= self.confidence_score <= 100:
            raise ValidationError("Confidence score must be between 0 and 100")
        if not 0 <= self.strength <= 100:
            raise ValidationError("Strength must be between 0 and 100")
        if not 0 <= self.priority_score <= 100:
            raise ValidationError("Priority score must be between 0 and 100")

    @property
    def pair_key(self) -> str:
        return pair_key(self.source_entity_id, self.target_entity_id)

    @property
    def is_pending(self) -> bool:
        return self.status is SuggestionStatus.PENDING

    @property
    def confidence_level(self) -> str:
        if self.confidence_score >= 90:
            return "very_high"
        if self.confidence_score >= 75:
            return "high"
        if self.confidence_score >= 60:
            return "medium"
        return "low"

    def _require_pending(self, action: str) -> None:
        if not self.is_pending:
            raise ValidationError(
                f"Cannot {action} suggestion {self.id} in status {self.status.value}"
            )

    def accept(self, user_id: str, created_relationship_id: str | None = None) -> None:
        """Mark as accepted by a user."""
        self._require_pending("accept")
        now = datetime.utcnow()
        self.status = SuggestionStatus.ACCEPTED
        self.user_action_type = UserActionType.ACCEPT
        self.accepted_at = now
        self.actioned_by = user_id
        self.created_relationship_id = created_relationship_id
        self.updated_at = now

    def reject(self, user_id: str, feedback: str | None = None) -> None:
        """Mark as rejected by a user."""
        self._require_pending("reject")
        now = datetime.utcnow()
        self.status = SuggestionStatus.REJECTED
        self.user_action_type = UserActionType.REJECT
        self.rejected_at = now
        self.actioned_by = user_id
        self.user_feedback_text = feedback
        self.updated_at = now

    def modify(
        self,
        user_id: str,
        new_type: str,
        new_strength: int | None = None,
        created_relationship_id: str | None = None,
    ) -> None:
        """Accept with a corrected type and/or strength."""
        self._require_pending("modify")
        if not new_type:
            raise ValidationError("Modification requires a relationship type")
        if new_strength is not None and not 0 <= new_strength <= 100:
            raise ValidationError("Modified strength must be between 0 and 100")
        now = datetime.utcnow()
        self.status = SuggestionStatus.MODIFIED
        self.user_action_type = UserActionType.MODIFY
        self.suggested_type = new_type
        if new_strength is not None:
            self.strength = new_strength
        self.accepted_at = now
        self.actioned_by = user_id
        self.created_relationship_id = created_relationship_id
        self.updated_at = now

    def dismiss(self, user_id: str, feedback: str | None = None) -> None:
        """Remove from the review queue without a verdict."""
        self._require_pending("dismiss")
        now = datetime.utcnow()
        self.status = SuggestionStatus.REJECTED
        self.user_action_type = UserActionType.DISMISS
        self.rejected_at = now
        self.actioned_by = user_id
        self.user_feedback_text = feedback
        self.updated_at = now

    def time_to_decision(self) -> int | None:
        """Seconds between creation and the human decision."""
        decided_at = self.accepted_at or self.rejected_at
        if decided_at is None:
            return None
        return max(0, int((decided_at - self.created_at).total_seconds()))

    def explanation(self) -> str:
        """Reasoning text, or a generic description when none was generated."""
        if self.reasoning:
            return self.reasoning

        method = {
            SuggestionMethod.CONTENT: "content analysis",
            SuggestionMethod.TIMELINE: "timeline proximity",
            SuggestionMethod.ATTRIBUTE: "attribute similarity",
            SuggestionMethod.SEMANTIC: "semantic analysis",
            SuggestionMethod.HYBRID: "multiple factors",
        }[self.suggestion_method]
        level = self.confidence_level.replace("_", " ").capitalize()
        return f"{level} confidence based on {method} ({self.confidence_score:.1f}% confidence)"

    def to_dict(self) -> dict:
        """Convert to dictionary for Neo4j storage."""
        return {
            "id": self.id,
            "graph_id": self.graph_id,
            "source_entity_id": self.source_entity_id,
            "target_entity_id": self.target_entity_id,
            "pair_key": self.pair_key,
            "suggested_type": self.suggested_type,
            "confidence_score": self.confidence_score,
            "strength": self.strength,
            "reasoning": self.reasoning,
            "evidence": json.dumps([item.to_dict() for item in self.evidence]),
            "suggestion_method": self.suggestion_method.value,
            "ai_model": self.ai_model,
            "status": self.status.value,
            "user_action_type": self.user_action_type.value,
            "user_feedback_text": self.user_feedback_text,
            "accepted_at": self.accepted_at.isoformat() if self.accepted_at else None,
            "rejected_at": self.rejected_at.isoformat() if self.rejected_at else None,
            "actioned_by": self.actioned_by,
            "created_relationship_id": self.created_relationship_id,
            "priority_score": self.priority_score,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RelationshipSuggestion":
        """Create from dictionary (Neo4j record)."""
        evidence = data.get("evidence") or []
        if isinstance(evidence, str):
            evidence = json.loads(evidence)
        return cls(
            id=data["id"],
            graph_id=data["graph_id"],
            source_entity_id=data["source_entity_id"],
            target_entity_id=data["target_entity_id"],
            suggested_type=data["suggested_type"],
            confidence_score=float(data["confidence_score"]),
            strength=int(data.get("strength", 50)),
            reasoning=data.get("reasoning"),
            evidence=[EvidenceItem.from_dict(item) for item in evidence],
            suggestion_method=SuggestionMethod(data.get("suggestion_method", "content")),
            ai_model=data.get("ai_model", "rule_based"),
            status=SuggestionStatus(data.get("status", "pending")),
            user_action_type=UserActionType(data.get("user_action_type", "none")),
            user_feedback_text=data.get("user_feedback_text"),
            accepted_at=parse_datetime(data.get("accepted_at")),
            rejected_at=parse_datetime(data.get("rejected_at")),
            actioned_by=data.get("actioned_by"),
            created_relationship_id=data.get("created_relationship_id"),
            priority_score=float(data.get("priority_score", 50.0)),
            created_at=parse_datetime(data.get("created_at")) or datetime.utcnow(),
            updated_at=parse_datetime(data.get("updated_at")) or datetime.utcnow(),
        )


@dataclass
class SuggestionFeature:
    """
    Snapshot of one feature value and the weight in effect when a
    suggestion was generated. Kept after weights change.
    """

    suggestion_id: str
    feature_type: FeatureType
    feature_value: float  # 0-1
    weight: float  # 0-1
    metadata: dict | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        if not 0 <= self.feature_value <= 1:
            raise ValidationError(
                f"Feature value must be between 0 and 1, got {self.feature_value:.4f}"
            )
        if not 0 <= self.weight <= 1:
            raise ValidationError(f"Weight must be between 0 and 1, got {self.weight:.4f}")

    @property
    def feature_name(self) -> str:
        return self.feature_type.description

    @property
    def weighted_value(self) -> float:
        return self.feature_value * self.weight

    @property
    def strength_label(self) -> str:
        if self.feature_value >= 0.8:
            return "very_strong"
        if self.feature_value >= 0.6:
            return "strong"
        if self.feature_value >= 0.4:
            return "moderate"
        return "weak"

    @property
    def is_high_value(self) -> bool:
        return self.feature_value >= 0.7 and self.weight >= 0.6

    def contribution(self, total_weighted_sum: float) -> float:
        """Percentage of the weighted sum this feature accounts for."""
        if total_weighted_sum <= 0:
            return 0.0
        return self.weighted_value / total_weighted_sum * 100

    def explanation(self) -> str:
        label = self.strength_label.replace("_", " ").capitalize()
        return (
            f"{self.feature_name}: {label} signal "
            f"({self.feature_value * 100:.1f}%, weight: {self.weight:.2f})"
        )

    def to_dict(self) -> dict:
        return {
            "suggestion_id": self.suggestion_id,
            "feature_type": self.feature_type.value,
            "feature_name": self.feature_name,
            "feature_value": self.feature_value,
            "weight": self.weight,
            "metadata": json.dumps(self.metadata) if self.metadata else None,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SuggestionFeature":
        metadata = data.get("metadata")
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        return cls(
            suggestion_id=data["suggestion_id"],
            feature_type=FeatureType(data["feature_type"]),
            feature_value=float(data["feature_value"]),
            weight=float(data.get("weight", 0.5)),
            metadata=metadata,
            created_at=parse_datetime(data.get("created_at")) or datetime.utcnow(),
        )
