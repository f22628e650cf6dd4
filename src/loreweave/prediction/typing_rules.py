"""Relationship typing as an ordered cascade of predicate rules.

The first matching rule decides the type. A rule marked ambiguous lets an
optional TypeClassifier refine its answer; the rule's own type is used
when no classifier is configured or the classifier fails.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from loreweave.models import Entity, FeatureType

logger = logging.getLogger(__name__)

DEFAULT_TYPE = "ally"

RELATIONSHIP_TYPES = (
    "ally",
    "enemy",
    "rival",
    "family",
    "mentor",
    "associate",
    "member_of",
    "located_at",
    "participated_in",
)


@dataclass
class TypingContext:
    """Everything a rule may look at for one entity pair."""

    source: Entity
    target: Entity
    features: dict[FeatureType, float] = field(default_factory=dict)

    def value(self, feature_type: FeatureType) -> float:
        return self.features.get(feature_type, 0.0)

    def types(self) -> set[str]:
        return {self.source.entity_type, self.target.entity_type}

    def is_pair_of(self, first: str, second: str) -> bool:
        return {self.source.entity_type, self.target.entity_type} == {first, second}


@dataclass(frozen=True)
class TypingRule:
    name: str
    rel_type: str
    predicate: Callable[[TypingContext], bool]
    ambiguous: bool = False

    def matches(self, context: TypingContext) -> bool:
        return self.predicate(context)


@dataclass(frozen=True)
class TypeDecision:
    rel_type: str
    rule: str
    used_classifier: bool = False


class TypeClassifier(Protocol):
    """External collaborator that names a relationship type for an entity pair."""

    async def classify(
        self,
        source: Entity,
        target: Entity,
        features: dict[FeatureType, float],
    ) -> str: ...


DEFAULT_RULES: tuple[TypingRule, ...] = (
    TypingRule(
        name="shared_faction",
        rel_type="ally",
        predicate=lambda c: c.value(FeatureType.SHARED_FACTION) >= 0.8,
    ),
    TypingRule(
        name="faction_membership",
        rel_type="member_of",
        predicate=lambda c: c.is_pair_of("character", "faction"),
    ),
    TypingRule(
        name="character_location",
        rel_type="located_at",
        predicate=lambda c: c.is_pair_of("character", "location"),
    ),
    TypingRule(
        name="event_participation",
        rel_type="participated_in",
        predicate=lambda c: "event" in c.types(),
    ),
    TypingRule(
        name="close_in_story",
        rel_type=DEFAULT_TYPE,
        predicate=lambda c: (
            c.value(FeatureType.CO_OCCURRENCE) >= 0.7
            and c.value(FeatureType.TIMELINE_PROXIMITY) >= 0.7
        ),
        ambiguous=True,
    ),
    TypingRule(
        name="shared_location",
        rel_type="associate",
        predicate=lambda c: c.value(FeatureType.SHARED_LOCATION) >= 0.6,
    ),
)


class RuleCascade:
    """Ordered rule list with an optional classifier for ambiguous matches."""

    def __init__(
        self,
        rules: Sequence[TypingRule] = DEFAULT_RULES,
        default_type: str = DEFAULT_TYPE,
        vocabulary: Sequence[str] = RELATIONSHIP_TYPES,
    ) -> None:
        self.rules = tuple(rules)
        self.default_type = default_type
        self.vocabulary = frozenset(vocabulary)

    def match(self, context: TypingContext) -> TypingRule | None:
        for rule in self.rules:
            if rule.matches(context):
                return rule
        return None

    async def resolve(
        self,
        context: TypingContext,
        classifier: TypeClassifier | None = None,
    ) -> TypeDecision:
        rule = self.match(context)
        if rule is None:
            return TypeDecision(rel_type=self.default_type, rule="default")

        if not rule.ambiguous or classifier is None:
            return TypeDecision(rel_type=rule.rel_type, rule=rule.name)

        try:
            answer = await classifier.classify(context.source, context.target, context.features)
        except Exception as e:
            logger.warning(
                f"Type classifier failed for {context.source.id}/{context.target.id}: {e}"
            )
            return TypeDecision(rel_type=rule.rel_type, rule=rule.name)

        answer = (answer or "").strip().lower()
        if answer not in self.vocabulary:
            logger.warning(f"Type classifier answered unknown type {answer!r}, using {rule.rel_type}")
            return TypeDecision(rel_type=rule.rel_type, rule=rule.name)

        return TypeDecision(rel_type=answer, rule=rule.name, used_classifier=True)
