"""Semantic similarity rated by an LLM."""

import re
from typing import Optional

from ..errors import OracleError
from ..llm.provider import LLMProvider, LLMError
from ..utils.prompts import load_prompt, format_prompt
from .base import SemanticOracle

EXCERPT_CHARS = 500
_NUMBER = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")


def parse_similarity(content: str) -> float:
    """Pull the first number out of a completion.

    Replies on another scale ("8/10", "85") are rejected rather than
    clamped, so the caller falls back instead of recording a false match.

    Raises:
        OracleError: If the completion holds no number, or the number is
            outside [0, 1].
    """
    match = _NUMBER.search(content or "")
    if not match:
        raise OracleError(f"No similarity score in oracle reply: {content[:100]!r}")
    value = float(match.group(0))
    if not 0.0 <= value <= 1.0:
        raise OracleError(f"Oracle reply {content[:100]!r} is not on a 0-1 scale")
    return value


class LLMSimilarityOracle(SemanticOracle):
    """Asks a chat model to rate meaning similarity on a 0-1 scale.

    Only the first 500 characters of each text are sent, which keeps the
    call cheap but means long texts are judged on their openings.
    """

    def __init__(self, provider: LLMProvider, temperature: float = 0.1, max_tokens: int = 10):
        self.provider = provider
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def name(self) -> str:
        return f"llm:{self.provider.provider_name}"

    def similarity(self, text_a: str, text_b: str, timeout: Optional[float] = None) -> float:
        user_prompt = format_prompt(
            "similarity_user",
            text_a=text_a[:EXCERPT_CHARS],
            text_b=text_b[:EXCERPT_CHARS],
        )
        try:
            content = self.provider.call(
                system_prompt=load_prompt("similarity_system"),
                user_prompt=user_prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=timeout,
            )
        except LLMError as e:
            raise OracleError(f"Similarity request failed: {e}")
        return parse_similarity(content)
