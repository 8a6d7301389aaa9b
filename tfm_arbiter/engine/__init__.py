"""Iteration engines that produce expand/compress snapshots."""

from .base import IterationEngine
from .llm_engine import LLMIterationEngine, PSYCHOSOCIAL_STAGES, build_system_prompt

__all__ = [
    "IterationEngine",
    "LLMIterationEngine",
    "PSYCHOSOCIAL_STAGES",
    "build_system_prompt",
]
