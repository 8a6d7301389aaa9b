"""Optimization run: alternate expand/compress until the arbiter stops the loop.

The pipeline:
1. Starts from the input text with the Expand operator
2. Asks the engine for a scored snapshot each iteration
3. Feeds the snapshot to the arbiter
4. Carries the decision's text forward (the best candidate after a rollback)
5. Stops on STOP_ACCEPT / STOP_BEST, or at the iteration budget
6. Has the judge vote the final text against the input for the mode-free metrics
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .arbiter import Arbiter
from .config import ArbiterConfig
from .engine.base import IterationEngine
from .errors import ArbiterInputError
from .llm.provider import LLMError
from .models import ArbiterAction, ArbiterDecision, ArbiterState, Operator
from .oracle.base import DEFAULT_TIMEOUT, SemanticOracle
from .utils.logging import get_logger, set_request_id
from .utils.text_processing import estimate_tokens

logger = get_logger(__name__)

EFFICIENCY_LAMBDA = 0.2
NEUTRAL_VOTE_COUNT = 4


@dataclass
class Savings:
    initial_tokens: int
    final_tokens: int
    percentage_saved: float


@dataclass
class ModeFreeMetrics:
    delta_q: float
    delta_t: float
    quality_gain_percent: float
    compactness_percent: float
    rgi: float
    rgi_percent: float
    efficiency: float
    efficiency_percent: float
    judge_votes: List[float] = field(default_factory=list)


@dataclass
class RunResult:
    """Outcome of one optimization run."""
    final_text: str
    action: ArbiterAction
    reason: str
    iterations: int
    converged: bool
    accepted_iteration: Optional[int]
    token_history: List[int]
    savings: Savings
    elapsed_sec: float
    used_input_fallback: bool  # no snapshot ever passed the quality gate
    decisions: List[ArbiterDecision] = field(default_factory=list)
    state: Optional[ArbiterState] = None
    mode_free: Optional[ModeFreeMetrics] = None  # None when the engine has no judge

    def summary(self) -> str:
        """One-line human explanation of how the run ended."""
        if self.action is ArbiterAction.STOP_ACCEPT:
            return f"Converged after {self.iterations} iterations; latest version accepted."
        if self.used_input_fallback:
            return (f"Stopped after {self.iterations} iterations without any version passing "
                    "the quality gate; original text kept.")
        return f"Stopped early after {self.iterations} iterations; best version kept."


def mode_free_metrics(
    initial_tokens: int,
    final_tokens: int,
    delta_q: float,
    judge_votes: Optional[List[float]] = None,
    lam: float = EFFICIENCY_LAMBDA,
) -> ModeFreeMetrics:
    """Quality-per-token figures that do not depend on the arbiter mode.

    Args:
        initial_tokens: Token count of the input.
        final_tokens: Token count of the output.
        delta_q: Mean pairwise judge vote, -1 (worse) to +1 (better).
        judge_votes: The individual votes, kept for reporting.
        lam: Weight of the size change in the efficiency score.
    """
    delta_t = (final_tokens - initial_tokens) / max(initial_tokens, 1)
    rgi = delta_q / max(abs(delta_t), 1e-6)
    efficiency = delta_q - lam * delta_t
    return ModeFreeMetrics(
        delta_q=round(delta_q, 4),
        delta_t=round(delta_t, 4),
        quality_gain_percent=round(100 * delta_q, 2),
        compactness_percent=round(-100 * delta_t, 2),
        rgi=round(rgi, 4),
        rgi_percent=round(100 * rgi, 2),
        efficiency=round(efficiency, 4),
        efficiency_percent=round(100 * efficiency, 2),
        judge_votes=list(judge_votes or []),
    )


def judge_final_text(engine: IterationEngine, original: str, final: str) -> Optional[List[float]]:
    """Pairwise votes of the final text against the input.

    A failed judge call yields neutral votes so the run still reports its
    metrics.
    """
    try:
        votes = engine.compare(original, final)
    except LLMError as e:
        logger.warning(f"Pairwise comparison failed, using neutral votes: {e}")
        return [0.0] * NEUTRAL_VOTE_COUNT
    if votes is not None:
        logger.info("Pairwise comparison votes", extra_data={"votes": votes})
    return votes


def run_optimization(
    text: str,
    engine: IterationEngine,
    oracle: Optional[SemanticOracle],
    config: ArbiterConfig,
    oracle_timeout: Optional[float] = DEFAULT_TIMEOUT,
    progress_callback: Optional[Callable[[int, ArbiterDecision], None]] = None,
) -> RunResult:
    """Drive one expand/compress run to termination.

    Args:
        text: Input text.
        engine: Produces a scored snapshot per iteration.
        oracle: Semantic-similarity oracle for the arbiter.
        config: Arbiter configuration; its iteration budget also bounds the loop.
        oracle_timeout: Seconds allowed per oracle call.
        progress_callback: Called with (iteration, decision) after each step.

    Raises:
        ArbiterInputError: If ``text`` is blank.
    """
    if not text or not text.strip():
        raise ArbiterInputError("Input text must be a non-empty string")

    set_request_id(f"run-{uuid.uuid4().hex[:8]}")

    arb = Arbiter(config, oracle, initial_text=text, timeout=oracle_timeout)
    start = time.time()
    initial_tokens = estimate_tokens(text)
    token_history = [initial_tokens]
    decisions: List[ArbiterDecision] = []

    working = text
    operator = Operator.EXPAND
    decision = None

    logger.info(
        f"Starting run in {config.mode.value} mode",
        extra_data={"initial_tokens": initial_tokens, "max_iterations": config.budget.max_iterations},
    )

    for iteration in range(1, config.budget.max_iterations + 1):
        snapshot = engine.step(working, operator, iteration)
        decision = arb.observe(snapshot)
        decisions.append(decision)
        token_history.append(estimate_tokens(decision.text))

        if progress_callback:
            progress_callback(iteration, decision)

        if decision.is_terminal:
            break

        working = decision.text
        operator = operator.other

    final_tokens = token_history[-1]
    votes = judge_final_text(engine, text, decision.text)
    mode_free = None
    if votes is not None:
        mode_free = mode_free_metrics(initial_tokens, final_tokens, sum(votes) / len(votes), votes)

    percentage_saved = (initial_tokens - final_tokens) / initial_tokens * 100
    result = RunResult(
        final_text=decision.text,
        action=decision.action,
        reason=decision.reason,
        iterations=arb.state.iteration,
        converged=decision.converged,
        accepted_iteration=arb.state.iteration if decision.converged else None,
        token_history=token_history,
        savings=Savings(
            initial_tokens=initial_tokens,
            final_tokens=final_tokens,
            percentage_saved=round(percentage_saved, 2),
        ),
        elapsed_sec=round(time.time() - start, 3),
        used_input_fallback=not arb.state.has_passing_candidate and not decision.converged,
        decisions=decisions,
        state=arb.state,
        mode_free=mode_free,
    )

    logger.info(
        f"Run finished: {result.action.value} after {result.iterations} iterations",
        extra_data={
            "converged": result.converged,
            "total_tokens": arb.state.total_tokens,
            "percentage_saved": result.savings.percentage_saved,
            "used_input_fallback": result.used_input_fallback,
        },
    )
    return result
