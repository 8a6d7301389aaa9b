"""LLM-backed expand/compress engine with an EFMNB judge."""

from typing import List, Optional

from ..config import EngineConfig
from ..llm.provider import LLMProvider, LLMResponseError
from ..models import IterationSnapshot, Operator, QualityScores, SCORE_AXES
from ..errors import ArbiterInputError
from ..utils.logging import get_logger
from ..utils.prompts import load_prompt, format_prompt
from ..utils.text_processing import estimate_tokens
from .base import IterationEngine

logger = get_logger(__name__)

PSYCHOSOCIAL_STAGES = {
    1: {"name": "Trust vs. Mistrust", "virtue": "Hope", "focus": "Basic safety and reliability"},
    2: {"name": "Autonomy vs. Shame", "virtue": "Will", "focus": "Independence and self-control"},
    3: {"name": "Initiative vs. Guilt", "virtue": "Purpose", "focus": "Taking initiative and planning"},
    4: {"name": "Industry vs. Inferiority", "virtue": "Competence", "focus": "Mastery and productivity"},
    5: {"name": "Identity vs. Role Confusion", "virtue": "Fidelity", "focus": "Identity formation and values"},
    6: {"name": "Intimacy vs. Isolation", "virtue": "Love", "focus": "Deep relationships and commitment"},
    7: {"name": "Generativity vs. Stagnation", "virtue": "Care", "focus": "Contribution and legacy"},
    8: {"name": "Integrity vs. Despair", "virtue": "Wisdom", "focus": "Life reflection and acceptance"},
}

SCORE_TEMPERATURE = 0.1
COMPARE_DIMENSIONS = 4


def build_system_prompt(operator: Operator, config: EngineConfig) -> str:
    """System prompt for one rewrite block."""
    if operator is Operator.EXPAND:
        return load_prompt("expand_efmnb_system" if config.use_efmnb_frame else "expand_system")

    stage = PSYCHOSOCIAL_STAGES.get(config.stage) if config.stage else None
    if stage is None:
        return load_prompt("compress_system")
    return format_prompt(
        "compress_stage_system",
        stage=config.stage,
        stage_name=stage["name"],
        virtue=stage["virtue"],
        focus=stage["focus"],
    )


class LLMIterationEngine(IterationEngine):
    """Runs the expand or compress block, then scores the result."""

    def __init__(
        self,
        provider: LLMProvider,
        config: Optional[EngineConfig] = None,
        judge: Optional[LLMProvider] = None,
    ):
        """Initialize the engine.

        Args:
            provider: Provider for the rewrite blocks.
            config: Prompt options.
            judge: Provider for EFMNB scoring and the pairwise votes
                (defaults to ``provider``).
        """
        self.provider = provider
        self.judge = judge or provider
        self.config = config or EngineConfig()

    def rewrite(self, text: str, operator: Operator) -> str:
        content = self.provider.call(
            system_prompt=build_system_prompt(operator, self.config),
            user_prompt=text,
        )
        rewritten = content.strip()
        if not rewritten:
            raise LLMResponseError(f"{operator.value} block returned empty text")
        return rewritten

    def score(self, text: str) -> QualityScores:
        """Ask the judge for an EFMNB vector; values are clamped to [0, 1].

        Raises:
            LLMResponseError: If the judge omits an axis or returns non-numbers.
        """
        data = self.judge.call_json(
            system_prompt=load_prompt("score_system"),
            user_prompt=format_prompt("score_user", text=text),
            temperature=SCORE_TEMPERATURE,
        )
        try:
            raw = QualityScores.from_dict(data)
        except ArbiterInputError as e:
            raise LLMResponseError(f"Judge returned an unusable score vector: {e}")
        return QualityScores(**{axis: max(0.0, min(1.0, value)) for axis, value in raw.to_dict().items()})

    def compare(self, old: str, new: str) -> List[float]:
        """Ask the judge to vote OLD against NEW on clarity, structure, constraints and factuality.

        Votes are clamped to [-1, 1].

        Raises:
            LLMResponseError: If the reply does not hold exactly one numeric
                vote per dimension.
        """
        data = self.judge.call_json(
            system_prompt=load_prompt("compare_system"),
            user_prompt=format_prompt("compare_user", old=old, new=new),
            temperature=SCORE_TEMPERATURE,
        )
        votes = data.get("votes") if isinstance(data, dict) else None
        if not isinstance(votes, list) or len(votes) != COMPARE_DIMENSIONS:
            raise LLMResponseError(f"Judge returned unusable votes: {votes!r}")
        if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in votes):
            raise LLMResponseError(f"Judge returned non-numeric votes: {votes!r}")
        return [max(-1.0, min(1.0, float(v))) for v in votes]

    def _usage(self) -> int:
        total = self.provider.get_usage_stats()["total_tokens"]
        if self.judge is not self.provider:
            total += self.judge.get_usage_stats()["total_tokens"]
        return total

    def step(self, text: str, operator: Operator, iteration: int) -> IterationSnapshot:
        before = self._usage()
        logger.info(f"Iteration {iteration}: running {operator.value} block")

        rewritten = self.rewrite(text, operator)
        scores = self.score(rewritten)

        tokens_used = self._usage() - before
        if tokens_used <= 0:
            tokens_used = estimate_tokens(text) + 2 * estimate_tokens(rewritten)

        logger.info(
            f"Iteration {iteration}: {operator.value} produced {estimate_tokens(rewritten)} tokens",
            extra_data={"tokens_used": tokens_used, **{axis: getattr(scores, axis) for axis in SCORE_AXES}},
        )
        return IterationSnapshot(
            iteration=iteration,
            text=rewritten,
            operator=operator,
            scores=scores,
            tokens_used=tokens_used,
        )
