"""Convergence governor for iterative expand/compress text rewriting."""

from .arbiter import Arbiter, arbiter, init_arbiter_state
from .config import (
    ArbiterConfig,
    ArbiterMode,
    BudgetConfig,
    ConvergenceConfig,
    QualityGatesConfig,
    ThresholdsConfig,
    CREATIVE_PRESET,
    TECH_PRESET,
    get_default_config,
    load_config,
)
from .errors import ArbiterError, ArbiterInputError, ConfigError, OracleError
from .models import (
    ArbiterAction,
    ArbiterDecision,
    ArbiterState,
    BestCandidate,
    DecisionMetrics,
    IterationMetrics,
    IterationSnapshot,
    Operator,
    QualityScores,
)
from .oracle import SemanticOracle, SimilarityResult, semantic_similarity
from .engine import IterationEngine
from .pipeline import RunResult, run_optimization, mode_free_metrics

__all__ = [
    "Arbiter",
    "arbiter",
    "init_arbiter_state",
    "ArbiterConfig",
    "ArbiterMode",
    "BudgetConfig",
    "ConvergenceConfig",
    "QualityGatesConfig",
    "ThresholdsConfig",
    "CREATIVE_PRESET",
    "TECH_PRESET",
    "get_default_config",
    "load_config",
    "ArbiterError",
    "ArbiterInputError",
    "ConfigError",
    "OracleError",
    "ArbiterAction",
    "ArbiterDecision",
    "ArbiterState",
    "BestCandidate",
    "DecisionMetrics",
    "IterationMetrics",
    "IterationSnapshot",
    "Operator",
    "QualityScores",
    "SemanticOracle",
    "SimilarityResult",
    "semantic_similarity",
    "IterationEngine",
    "RunResult",
    "run_optimization",
    "mode_free_metrics",
]
