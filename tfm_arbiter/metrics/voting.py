"""Five-metric convergence vote between consecutive snapshots."""

from dataclasses import dataclass
from typing import Dict, Optional

from ..config import ThresholdsConfig, ConvergenceConfig
from ..models import IterationMetrics, IterationSnapshot
from ..oracle.base import SemanticOracle, SimilarityResult, semantic_similarity, DEFAULT_TIMEOUT
from .scores import score_delta
from .similarity import lexical_similarity, length_delta, style_delta


@dataclass
class VoteResult:
    votes: int
    converged: bool
    ballots: Dict[str, bool]


def compute_metrics(
    prev: IterationSnapshot,
    curr: IterationSnapshot,
    oracle: Optional[SemanticOracle],
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> IterationMetrics:
    """Compare ``curr`` against ``prev`` on all five signals.

    The semantic signal is the only one that leaves the process; when the
    oracle fails it is replaced by the lexical fallback and flagged.
    """
    semantic: SimilarityResult = semantic_similarity(oracle, prev.text, curr.text, timeout=timeout)
    return IterationMetrics(
        semantic=semantic.value,
        lexical=lexical_similarity(prev.text, curr.text),
        length_delta=length_delta(prev.text, curr.text),
        style_delta=style_delta(prev.text, curr.text),
        score_delta=score_delta(prev.scores, curr.scores),
        semantic_degraded=semantic.degraded,
    )


def count_votes(
    metrics: IterationMetrics,
    thresholds: ThresholdsConfig,
    convergence: ConvergenceConfig,
) -> VoteResult:
    """Cast one vote per metric that clears its threshold.

    Similarities must reach their bound; deltas must stay at or under theirs.
    """
    ballots = {
        "semantic": metrics.semantic >= thresholds.semantic,
        "lexical": metrics.lexical >= thresholds.lexical,
        "length": metrics.length_delta <= thresholds.length,
        "style": metrics.style_delta <= thresholds.style,
        "efmn": metrics.score_delta <= thresholds.efmn,
    }
    votes = sum(ballots.values())
    return VoteResult(
        votes=votes,
        converged=votes >= convergence.votes_required,
        ballots=ballots,
    )
