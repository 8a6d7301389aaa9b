"""Iteration engine interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import IterationSnapshot, Operator


class IterationEngine(ABC):
    """Produces one rewritten, scored snapshot per call."""

    @abstractmethod
    def step(self, text: str, operator: Operator, iteration: int) -> IterationSnapshot:
        """Rewrite ``text`` with ``operator`` and score the result.

        Args:
            text: Text to rewrite.
            operator: Expand or Compress.
            iteration: 1-based iteration number for the snapshot.

        Returns:
            The new snapshot, including its token cost.
        """
        pass

    def compare(self, old: str, new: str) -> Optional[List[float]]:
        """Pairwise votes on how ``new`` compares to ``old``, or None without a judge.

        Each vote lies in [-1, 1]; positive means ``new`` is better.
        """
        return None
