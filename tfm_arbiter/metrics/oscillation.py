"""A-B-A-B oscillation detection over the tail of the run history."""

from typing import Sequence

from ..models import IterationSnapshot
from .similarity import lexical_similarity

WINDOW = 4
RESEMBLANCE_BOUND = 0.9
DISTINCTNESS_BOUND = 0.8


def detect_oscillation(history: Sequence[IterationSnapshot]) -> bool:
    """Check whether the last four snapshots alternate between two versions.

    Snapshot 0 must resemble snapshot 2 and snapshot 1 must resemble
    snapshot 3, while every consecutive pair differs markedly. Cycles
    longer than two are not detected. Pairs measured by earlier calls come
    from the lexical-similarity cache.

    Args:
        history: Run history, oldest first.

    Returns:
        True if the A-B-A-B pattern is present; False with fewer than four
        snapshots.
    """
    if len(history) < WINDOW:
        return False

    texts = [snapshot.text for snapshot in history[-WINDOW:]]

    skip_one = (
        lexical_similarity(texts[0], texts[2]),
        lexical_similarity(texts[1], texts[3]),
    )
    adjacent = (
        lexical_similarity(texts[0], texts[1]),
        lexical_similarity(texts[1], texts[2]),
        lexical_similarity(texts[2], texts[3]),
    )

    return (
        all(sim > RESEMBLANCE_BOUND for sim in skip_one)
        and all(sim < DISTINCTNESS_BOUND for sim in adjacent)
    )
