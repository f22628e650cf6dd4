"""LLM-backed relationship type classifier."""

import logging

from loreweave.ai.llm_client import LLMClient
from loreweave.models import Entity, FeatureType
from loreweave.prediction.typing_rules import RELATIONSHIP_TYPES

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You classify relationships between entities of a fictional universe. "
    "Answer with exactly one relationship type from the allowed list and nothing else."
)

CLASSIFY_PROMPT = """Entity A: {source_name} ({source_type})
Entity B: {target_name} ({target_type})

Signals (0-1):
{signals}

Allowed types: {allowed}

Relationship type:"""


class LLMTypeClassifier:
    """TypeClassifier that asks an OpenAI-compatible model for the type."""

    def __init__(self, llm: LLMClient, allowed_types: tuple[str, ...] = RELATIONSHIP_TYPES) -> None:
        self.llm = llm
        self.allowed_types = allowed_types

    @property
    def model_name(self) -> str:
        return self.llm.model

    def build_prompt(
        self,
        source: Entity,
        target: Entity,
        features: dict[FeatureType, float],
    ) -> str:
        signals = "\n".join(
            f"- {feature_type.description}: {value:.2f}"
            for feature_type, value in sorted(features.items(), key=lambda kv: -kv[1])
        )
        return CLASSIFY_PROMPT.format(
            source_name=source.name,
            source_type=source.entity_type,
            target_name=target.name,
            target_type=target.entity_type,
            signals=signals or "- none",
            allowed=", ".join(self.allowed_types),
        )

    async def classify(
        self,
        source: Entity,
        target: Entity,
        features: dict[FeatureType, float],
    ) -> str:
        response = await self.llm.generate(
            prompt=self.build_prompt(source, target, features),
            system_prompt=SYSTEM_PROMPT,
        )
        # Models sometimes wrap the answer in punctuation or add a sentence
        first = response.strip().splitlines()[0] if response.strip() else ""
        answer = first.strip(" .\"'`").lower().replace(" ", "_")
        logger.debug(f"Classifier typed {source.name} / {target.name} as {answer!r}")
        return answer
