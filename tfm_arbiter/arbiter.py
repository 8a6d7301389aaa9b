"""Arbiter: stopping policy for the expand/compress rewrite loop.

After every iteration the arbiter compares the new snapshot with its
predecessor and answers with one of four actions:

- CONTINUE: keep iterating from the current text
- STOP_ACCEPT: the text has converged; accept it
- STOP_BEST: stop and fall back to the best gate-passing text seen
- ROLLBACK: the current text failed the quality gate; resume from the best

Convergence is a vote across five signals (semantic similarity, lexical
similarity, length change, style change, score-vector change) that must
hold for ``patience`` consecutive iterations. The budget check outranks
everything; the quality gate outranks convergence.
"""

from typing import Any, Dict, Optional

from .config import ArbiterConfig
from .errors import ArbiterInputError
from .metrics.oscillation import detect_oscillation
from .metrics.scores import candidate_score, gate_threshold, quality_gate_passed
from .metrics.voting import compute_metrics, count_votes
from .models import (
    ArbiterAction,
    ArbiterDecision,
    ArbiterState,
    BestCandidate,
    DecisionMetrics,
    IterationSnapshot,
)
from .oracle.base import DEFAULT_TIMEOUT, SemanticOracle
from .utils.logging import get_logger

logger = get_logger(__name__)

ROLLBACK_PENALTY = 0.05
OSCILLATION_LIMIT = 2


def init_arbiter_state(initial_text: str = "") -> ArbiterState:
    """Fresh state for one optimization run.

    The best candidate is seeded with the run's input text at score 0.0 and
    iteration 0, so budget stops and rollbacks before any snapshot passes
    the gate hand back the input rather than an empty string.
    """
    return ArbiterState(best_candidate=BestCandidate(text=initial_text, score=0.0, iteration=0))


def _validate(prev: Optional[IterationSnapshot], curr: IterationSnapshot, state: ArbiterState) -> None:
    if not isinstance(curr, IterationSnapshot):
        raise ArbiterInputError(f"Expected IterationSnapshot, got {type(curr).__name__}")
    if curr.iteration <= state.iteration:
        raise ArbiterInputError(
            f"Snapshot iteration {curr.iteration} does not follow last seen iteration {state.iteration}"
        )
    if prev is not None:
        if not isinstance(prev, IterationSnapshot):
            raise ArbiterInputError(f"Expected IterationSnapshot, got {type(prev).__name__}")
        if prev.iteration >= curr.iteration:
            raise ArbiterInputError(
                f"Previous snapshot iteration {prev.iteration} is not before {curr.iteration}"
            )


def _update_best(state: ArbiterState, curr: IterationSnapshot, score: float) -> bool:
    if score > state.best_candidate.score:
        state.best_candidate = BestCandidate(text=curr.text, score=score, iteration=curr.iteration)
        return True
    return False


def _base_telemetry(state: ArbiterState, curr: IterationSnapshot) -> Dict[str, Any]:
    return {
        "iteration": state.iteration,
        "operator": curr.operator.value,
        "scores": curr.scores.to_dict(),
        "tokens_used": curr.tokens_used,
        "total_tokens": state.total_tokens,
        "best_iteration": state.best_candidate.iteration,
        "best_score": state.best_candidate.score,
        "best_is_input": not state.has_passing_candidate,
        "penalties": {op.value: value for op, value in state.penalties.items()},
    }


def _decide(
    action: ArbiterAction,
    reason: str,
    text: str,
    converged: bool,
    metrics: DecisionMetrics,
    telemetry: Dict[str, Any],
) -> ArbiterDecision:
    decision = ArbiterDecision(
        action=action,
        reason=reason,
        text=text,
        converged=converged,
        metrics=metrics,
        telemetry=telemetry,
    )
    logger.info(
        f"Iteration {telemetry.get('iteration')}: {action.value} - {reason}",
        extra_data={
            "action": action.value,
            "votes": metrics.votes,
            "streak": metrics.convergence_streak,
            "gate": metrics.quality_gate,
            "oscillation": metrics.oscillation_detected,
        },
    )
    return decision


def arbiter(
    prev: Optional[IterationSnapshot],
    curr: IterationSnapshot,
    state: ArbiterState,
    config: ArbiterConfig,
    oracle: Optional[SemanticOracle],
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> ArbiterDecision:
    """Decide what the loop should do after ``curr``.

    Args:
        prev: The snapshot ``curr`` is compared against, or None on the
            first iteration.
        curr: The freshly produced snapshot. Its ``metrics`` field is filled
            in when ``prev`` is given.
        state: The run's accumulator, mutated in place.
        config: Thresholds, gates, convergence and budget settings.
        oracle: Semantic-similarity oracle; failures fall back to a lexical
            proxy and are reported in telemetry.
        timeout: Seconds allowed for the oracle call.

    Returns:
        The decision, its reason, the text to carry forward and telemetry.

    Raises:
        ArbiterInputError: If the snapshots are malformed or out of order.
    """
    _validate(prev, curr, state)

    state.history.append(curr)
    state.iteration = curr.iteration

    total_tokens = state.total_tokens
    budget = config.budget
    if total_tokens >= budget.max_tokens or state.iteration >= budget.max_iterations:
        telemetry = _base_telemetry(state, curr)
        telemetry["budget"] = {
            "max_tokens": budget.max_tokens,
            "max_iterations": budget.max_iterations,
        }
        return _decide(
            ArbiterAction.STOP_BEST,
            "Budget exhausted - returning best candidate",
            state.best_candidate.text,
            False,
            DecisionMetrics(
                votes=0,
                convergence_streak=state.convergence_streak,
                quality_gate=quality_gate_passed(curr.scores, config),
                oscillation_detected=False,
            ),
            telemetry,
        )

    score = candidate_score(curr.scores)
    gate_ok = quality_gate_passed(curr.scores, config)

    if prev is None:
        if gate_ok:
            _update_best(state, curr, score)
        telemetry = _base_telemetry(state, curr)
        telemetry.update({"score": score, "quality_gate": gate_ok})
        return _decide(
            ArbiterAction.CONTINUE,
            "First iteration - no comparison available",
            curr.text,
            False,
            DecisionMetrics(
                votes=0,
                convergence_streak=state.convergence_streak,
                quality_gate=gate_ok,
                oscillation_detected=False,
            ),
            telemetry,
        )

    metrics = compute_metrics(prev, curr, oracle, timeout=timeout)
    curr.metrics = metrics

    vote = count_votes(metrics, config.thresholds, config.convergence)
    if vote.converged:
        state.convergence_streak += 1
    else:
        state.convergence_streak = 0

    oscillation = detect_oscillation(state.history)
    if oscillation:
        state.oscillation_count += 1

    if gate_ok:
        _update_best(state, curr, score)

    telemetry = _base_telemetry(state, curr)
    telemetry.update({
        "votes": vote.votes,
        "ballots": vote.ballots,
        "semantic": metrics.semantic,
        "lexical": metrics.lexical,
        "length_delta": metrics.length_delta,
        "style_delta": metrics.style_delta,
        "score_delta": metrics.score_delta,
        "semantic_degraded": metrics.semantic_degraded,
        "score": score,
        "quality_gate": gate_ok,
        "gate_threshold": gate_threshold(curr.scores, config),
        "oscillation": oscillation,
        "oscillation_count": state.oscillation_count,
        "convergence_streak": state.convergence_streak,
    })

    if not gate_ok:
        state.penalties[curr.operator] += ROLLBACK_PENALTY
        telemetry["penalties"] = {op.value: value for op, value in state.penalties.items()}
        s = curr.scores
        return _decide(
            ArbiterAction.ROLLBACK,
            f"Quality gate failed - F:{s.F:.2f}, N:{s.N:.2f}, M:{s.M:.2f}",
            state.best_candidate.text,
            False,
            DecisionMetrics(
                votes=vote.votes,
                convergence_streak=state.convergence_streak,
                quality_gate=False,
                oscillation_detected=oscillation,
            ),
            telemetry,
        )

    convergence = config.convergence
    if state.convergence_streak >= convergence.patience:
        return _decide(
            ArbiterAction.STOP_ACCEPT,
            f"Converged - {vote.votes}/{convergence.votes_required} metrics passed "
            f"for {state.convergence_streak} iterations",
            curr.text,
            True,
            DecisionMetrics(
                votes=vote.votes,
                convergence_streak=state.convergence_streak,
                quality_gate=True,
                oscillation_detected=oscillation,
            ),
            telemetry,
        )

    if oscillation and state.oscillation_count >= OSCILLATION_LIMIT:
        return _decide(
            ArbiterAction.STOP_BEST,
            "Oscillation detected - returning best candidate",
            state.best_candidate.text,
            False,
            DecisionMetrics(
                votes=vote.votes,
                convergence_streak=state.convergence_streak,
                quality_gate=True,
                oscillation_detected=True,
            ),
            telemetry,
        )

    return _decide(
        ArbiterAction.CONTINUE,
        f"Converging - {vote.votes}/{convergence.votes_required} metrics, "
        f"streak {state.convergence_streak}/{convergence.patience}",
        curr.text,
        False,
        DecisionMetrics(
            votes=vote.votes,
            convergence_streak=state.convergence_streak,
            quality_gate=True,
            oscillation_detected=oscillation,
        ),
        telemetry,
    )


class Arbiter:
    """Binds one run's state, config and oracle behind a single ``observe`` call."""

    def __init__(
        self,
        config: ArbiterConfig,
        oracle: Optional[SemanticOracle],
        initial_text: str = "",
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ):
        self.config = config
        self.oracle = oracle
        self.timeout = timeout
        self.state = init_arbiter_state(initial_text)

    @property
    def last_snapshot(self) -> Optional[IterationSnapshot]:
        return self.state.history[-1] if self.state.history else None

    def observe(self, snapshot: IterationSnapshot) -> ArbiterDecision:
        """Feed the next snapshot, comparing it with the previous one."""
        return arbiter(
            self.last_snapshot,
            snapshot,
            self.state,
            self.config,
            self.oracle,
            timeout=self.timeout,
        )
