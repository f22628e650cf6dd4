"""External text-generation collaborator used for relationship type refinement."""

from loreweave.ai.llm_client import LLMClient, close_llm_client, get_llm_client
from loreweave.ai.type_classifier import LLMTypeClassifier

__all__ = [
    "LLMClient",
    "LLMTypeClassifier",
    "get_llm_client",
    "close_llm_client",
]
