"""Semantic-similarity oracles."""

from typing import Optional

from ..config import Config
from ..llm import create_provider_from_config
from ..metrics.similarity import lexical_similarity
from .base import (
    DEFAULT_TIMEOUT,
    SemanticOracle,
    SimilarityResult,
    fallback_similarity,
    semantic_similarity,
)
from .embedding import EmbeddingSimilarityOracle
from .llm_oracle import LLMSimilarityOracle, parse_similarity


class LexicalOracle(SemanticOracle):
    """Offline stand-in that reports lexical similarity as meaning similarity."""

    @property
    def name(self) -> str:
        return "lexical"

    def similarity(self, text_a: str, text_b: str, timeout: Optional[float] = None) -> float:
        return lexical_similarity(text_a, text_b)


def create_oracle(config: Config) -> SemanticOracle:
    """Build the oracle selected by ``config.oracle.kind``."""
    kind = config.oracle.kind
    if kind == "embedding":
        return EmbeddingSimilarityOracle(config.oracle.embedding_model)
    if kind == "lexical":
        return LexicalOracle()
    return LLMSimilarityOracle(create_provider_from_config(config.llm, role="oracle"))


__all__ = [
    "DEFAULT_TIMEOUT",
    "SemanticOracle",
    "SimilarityResult",
    "fallback_similarity",
    "semantic_similarity",
    "EmbeddingSimilarityOracle",
    "LLMSimilarityOracle",
    "LexicalOracle",
    "parse_similarity",
    "create_oracle",
]
