"""Quality-score comparison and the bias-adjusted quality gate."""

import math

import numpy as np

from ..config import ArbiterConfig
from ..models import QualityScores, SCORE_AXES

_NORMALIZER = math.sqrt(len(SCORE_AXES))


def score_delta(before: QualityScores, after: QualityScores) -> float:
    """Euclidean distance between two score vectors, divided by sqrt(5)."""
    diff = np.asarray(after.as_vector()) - np.asarray(before.as_vector())
    return float(np.linalg.norm(diff) / _NORMALIZER)


def gate_threshold(scores: QualityScores, config: ArbiterConfig) -> float:
    """Floor for F, N and M after the bias penalty."""
    gates = config.quality_gates
    return gates.min_fnm - gates.b_penalty * scores.B


def quality_gate_passed(scores: QualityScores, config: ArbiterConfig) -> bool:
    """True iff F, N and M all clear the bias-adjusted floor. E is not gated."""
    threshold = gate_threshold(scores, config)
    return scores.F >= threshold and scores.N >= threshold and scores.M >= threshold


def candidate_score(scores: QualityScores) -> float:
    """Ranking score for best-candidate tracking: mean of F, N and M."""
    return (scores.F + scores.N + scores.M) / 3
