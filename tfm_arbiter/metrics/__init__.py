"""Per-iteration comparison metrics."""

from .similarity import lexical_similarity, style_delta, length_delta
from .scores import score_delta, quality_gate_passed, candidate_score, gate_threshold
from .oscillation import detect_oscillation
from .voting import VoteResult, compute_metrics, count_votes

__all__ = [
    "lexical_similarity",
    "style_delta",
    "length_delta",
    "score_delta",
    "quality_gate_passed",
    "candidate_score",
    "gate_threshold",
    "detect_oscillation",
    "VoteResult",
    "compute_metrics",
    "count_votes",
]
