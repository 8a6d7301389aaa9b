"""LLM provider abstraction layer."""

from .provider import (
    LLMProvider,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
    LLMResponseError,
    get_provider,
    create_provider_from_config,
    register_provider,
    parse_json_content,
)

# Import providers to register them
from . import gateway
from .gateway import GatewayProvider

__all__ = [
    "LLMProvider",
    "LLMError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LLMResponseError",
    "get_provider",
    "create_provider_from_config",
    "register_provider",
    "parse_json_content",
    "GatewayProvider",
]
