"""Utility modules for the arbiter."""

from .logging import (
    get_logger,
    setup_logging,
    set_request_id,
    get_request_id,
    log_llm_call,
)
from .text_processing import (
    normalize_text,
    levenshtein_distance,
    split_sentences,
    split_words,
    estimate_tokens,
)
from .prompts import (
    load_prompt,
    format_prompt,
    list_prompts,
    clear_prompt_cache,
)

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    "set_request_id",
    "get_request_id",
    "log_llm_call",
    # Text
    "normalize_text",
    "levenshtein_distance",
    "split_sentences",
    "split_words",
    "estimate_tokens",
    # Prompts
    "load_prompt",
    "format_prompt",
    "list_prompts",
    "clear_prompt_cache",
]
