"""Text processing utilities for comparing iteration snapshots."""

import math
import re
from typing import List

from rapidfuzz.distance import Levenshtein

_PUNCTUATION = re.compile(r"[.,!?;:'\"]")
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"[.!?]+")


def normalize_text(text: str) -> str:
    """Lowercase, trim, collapse whitespace and strip punctuation."""
    normalized = _WHITESPACE.sub(" ", text.lower().strip())
    return _PUNCTUATION.sub("", normalized)


def levenshtein_distance(a: str, b: str) -> int:
    """Unit-cost edit distance between two strings."""
    return Levenshtein.distance(a, b)


def split_sentences(text: str) -> List[str]:
    """Split on terminal punctuation, dropping empty fragments."""
    return [s for s in _SENTENCE_END.split(text) if s.strip()]


def split_words(text: str) -> List[str]:
    """Lowercased whitespace-delimited words."""
    return [w for w in _WHITESPACE.split(text.lower()) if w]


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(text) / 4)
