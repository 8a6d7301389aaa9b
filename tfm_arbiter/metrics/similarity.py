"""Lexical and stylistic comparison of consecutive snapshots."""

from functools import lru_cache

from ..utils.text_processing import (
    levenshtein_distance,
    normalize_text,
    split_sentences,
    split_words,
)


@lru_cache(maxsize=256)
def lexical_similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity of two texts.

    Both texts are normalized first. Two texts that are empty after
    normalization score 0.0, not 1.0, so blank output can never look
    converged.

    Results are memoized: the convergence vote and the oscillation window
    keep comparing the same recent snapshots.

    Returns:
        Similarity from 0.0 to 1.0.
    """
    norm_a = normalize_text(a)
    norm_b = normalize_text(b)
    max_len = max(len(norm_a), len(norm_b))
    if max_len == 0:
        return 0.0
    return 1.0 - levenshtein_distance(norm_a, norm_b) / max_len


def _mean_sentence_length(text: str) -> float:
    sentences = split_sentences(text)
    if not sentences:
        return 0.0
    return len(text) / len(sentences)


def _lexical_diversity(text: str) -> float:
    words = split_words(text)
    if not words:
        return 0.0
    return len(set(words)) / len(words)


def style_delta(a: str, b: str) -> float:
    """Average of the relative sentence-length change and the diversity change.

    Args:
        a: Earlier text.
        b: Later text.

    Returns:
        Non-negative delta; 0.0 means no measurable style shift.
    """
    len_a = _mean_sentence_length(a)
    len_b = _mean_sentence_length(b)
    length_change = abs(len_b - len_a) / len_a if len_a > 0 else 0.0
    diversity_change = abs(_lexical_diversity(b) - _lexical_diversity(a))
    return (length_change + diversity_change) / 2


def length_delta(a: str, b: str) -> float:
    """Relative change in character length from ``a`` to ``b``."""
    if not a:
        return 0.0
    return abs(len(b) - len(a)) / len(a)
