"""Semantic-similarity oracle interface and its degraded fallback."""

import math
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..errors import OracleError
from ..metrics.similarity import lexical_similarity
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 8.0


class SemanticOracle(ABC):
    """Scores how similar two texts are in meaning.

    Implementations make a single attempt per call and raise on failure;
    falling back is the caller's job (see :func:`semantic_similarity`).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def similarity(self, text_a: str, text_b: str, timeout: Optional[float] = None) -> float:
        """Return meaning similarity in [0, 1].

        Args:
            text_a: First text.
            text_b: Second text.
            timeout: Upper bound in seconds for any I/O the oracle performs.

        Raises:
            OracleError: If no score could be produced.
        """
        pass


@dataclass(frozen=True)
class SimilarityResult:
    """Outcome of one oracle consultation."""
    value: float
    degraded: bool = False  # value is the lexical fallback
    error: Optional[str] = None
    duration_ms: int = 0


def fallback_similarity(text_a: str, text_b: str) -> float:
    """Stand-in used when the oracle fails: 1 - lexical similarity."""
    return 1.0 - lexical_similarity(text_a, text_b)


def _call_with_deadline(oracle: SemanticOracle, text_a: str, text_b: str, timeout: Optional[float]) -> float:
    """Run one oracle call, giving up once ``timeout`` seconds have passed in total.

    Transport timeouts only bound connecting and each read, so a reply that
    trickles in can outlast them. The call runs on a worker thread; an
    overrunning call is abandoned and ends on its own transport timeout.
    """
    if timeout is None:
        return oracle.similarity(text_a, text_b, timeout=None)

    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(oracle.similarity, text_a, text_b, timeout=timeout)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            raise OracleError(f"Oracle call exceeded {timeout}s")
    finally:
        executor.shutdown(wait=False)


def semantic_similarity(
    oracle: Optional[SemanticOracle],
    text_a: str,
    text_b: str,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> SimilarityResult:
    """Consult the oracle once, substituting the fallback on any failure.

    The substitution changes how the semantic vote behaves for that
    iteration, so it is logged and flagged on the result for telemetry.
    """
    start = time.time()
    try:
        if oracle is None:
            raise OracleError("No semantic oracle configured")
        value = float(_call_with_deadline(oracle, text_a, text_b, timeout))
        if not math.isfinite(value) or not 0.0 <= value <= 1.0:
            raise OracleError(f"Oracle returned out-of-range similarity {value}")
    except Exception as e:
        duration_ms = int((time.time() - start) * 1000)
        fallback = fallback_similarity(text_a, text_b)
        error = f"{type(e).__name__}: {e}"
        logger.warning(
            "Semantic oracle failed, using lexical fallback",
            extra_data={
                "oracle": getattr(oracle, "name", None),
                "error": error,
                "fallback": round(fallback, 4),
                "duration_ms": duration_ms,
            },
        )
        return SimilarityResult(value=fallback, degraded=True, error=error, duration_ms=duration_ms)

    return SimilarityResult(value=value, duration_ms=int((time.time() - start) * 1000))
