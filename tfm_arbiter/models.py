"""Data models shared by the arbiter, the iteration engine and the LLM layer."""

import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional

from .errors import ArbiterInputError

SCORE_AXES = ("E", "F", "M", "N", "B")


class Operator(str, Enum):
    """Rewrite phase that produced a snapshot."""
    EXPAND = "Expand"
    COMPRESS = "Compress"

    @property
    def other(self) -> "Operator":
        return Operator.COMPRESS if self is Operator.EXPAND else Operator.EXPAND


class ArbiterAction(str, Enum):
    """Control decision returned after each iteration."""
    CONTINUE = "CONTINUE"
    STOP_ACCEPT = "STOP_ACCEPT"
    STOP_BEST = "STOP_BEST"
    ROLLBACK = "ROLLBACK"


@dataclass(frozen=True)
class QualityScores:
    """Five-axis quality vector produced by an external judge.

    E, F, M and N are quality axes; B is a bias/risk penalty axis.
    """
    E: float
    F: float
    M: float
    N: float
    B: float

    def __post_init__(self):
        for axis in SCORE_AXES:
            value = getattr(self, axis)
            if isinstance(value, bool) or not isinstance(value, Real):
                raise ArbiterInputError(f"Score axis {axis} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ArbiterInputError(f"Score axis {axis} must be finite, got {value!r}")
            object.__setattr__(self, axis, float(value))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QualityScores":
        """Build from a mapping, rejecting any missing axis."""
        missing = [axis for axis in SCORE_AXES if axis not in data]
        if missing:
            raise ArbiterInputError(f"Score vector missing axes: {', '.join(missing)}")
        return cls(**{axis: data[axis] for axis in SCORE_AXES})

    def to_dict(self) -> Dict[str, float]:
        return {axis: getattr(self, axis) for axis in SCORE_AXES}

    def as_vector(self) -> List[float]:
        return [getattr(self, axis) for axis in SCORE_AXES]


@dataclass
class IterationMetrics:
    """Comparison of a snapshot against its predecessor."""
    semantic: float
    lexical: float
    length_delta: float
    style_delta: float
    score_delta: float
    semantic_degraded: bool = False  # semantic came from the lexical fallback

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class IterationSnapshot:
    """One observation of the iterative rewrite process."""
    iteration: int
    text: str
    operator: Operator
    scores: QualityScores
    tokens_used: int = 0
    metrics: Optional[IterationMetrics] = None

    def __post_init__(self):
        if isinstance(self.iteration, bool) or not isinstance(self.iteration, int) or self.iteration < 1:
            raise ArbiterInputError(f"Snapshot iteration must be an integer >= 1, got {self.iteration!r}")
        if not isinstance(self.text, str):
            raise ArbiterInputError(f"Snapshot text must be a string, got {type(self.text).__name__}")
        if not isinstance(self.operator, Operator):
            try:
                self.operator = Operator(self.operator)
            except ValueError:
                raise ArbiterInputError(f"Unknown operator: {self.operator!r}")
        if isinstance(self.scores, Mapping):
            self.scores = QualityScores.from_dict(self.scores)
        elif not isinstance(self.scores, QualityScores):
            raise ArbiterInputError(f"Snapshot scores must be QualityScores, got {type(self.scores).__name__}")
        if isinstance(self.tokens_used, bool) or not isinstance(self.tokens_used, int) or self.tokens_used < 0:
            raise ArbiterInputError(f"tokens_used must be a non-negative integer, got {self.tokens_used!r}")


@dataclass
class BestCandidate:
    """Highest-scoring gate-passing text seen so far."""
    text: str
    score: float
    iteration: int


@dataclass
class ArbiterState:
    """Per-run accumulator threaded through every arbiter call.

    One instance belongs to exactly one optimization run.
    """
    iteration: int = 0
    history: List[IterationSnapshot] = field(default_factory=list)
    best_candidate: BestCandidate = field(default_factory=lambda: BestCandidate(text="", score=0.0, iteration=0))
    convergence_streak: int = 0
    oscillation_count: int = 0
    penalties: Dict[Operator, float] = field(
        default_factory=lambda: {Operator.EXPAND: 0.0, Operator.COMPRESS: 0.0}
    )

    @property
    def total_tokens(self) -> int:
        return sum(snapshot.tokens_used for snapshot in self.history)

    @property
    def has_passing_candidate(self) -> bool:
        """False while the best candidate is still the seeded input text."""
        return self.best_candidate.iteration > 0


@dataclass
class DecisionMetrics:
    votes: int
    convergence_streak: int
    quality_gate: bool
    oscillation_detected: bool


@dataclass
class ArbiterDecision:
    """Control decision plus the evidence behind it."""
    action: ArbiterAction
    reason: str
    text: str
    converged: bool
    metrics: DecisionMetrics
    telemetry: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.action in (ArbiterAction.STOP_ACCEPT, ArbiterAction.STOP_BEST)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "reason": self.reason,
            "text": self.text,
            "converged": self.converged,
            "metrics": asdict(self.metrics),
            "telemetry": self.telemetry,
        }


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class LLMResponse:
    """Normalized completion returned by a provider."""
    content: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens
