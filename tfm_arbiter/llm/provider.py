"""Abstract base class for LLM providers."""

import json
import re
import time
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Type

from ..models import Message, MessageRole, LLMResponse
from ..config import LLMProviderConfig, LLMConfig
from ..utils.logging import get_logger, log_llm_call

logger = get_logger(__name__)


class LLMError(Exception):
    """Base exception for LLM-related errors."""
    pass


class LLMRateLimitError(LLMError):
    """Raised when rate limit is hit."""
    pass


class LLMTimeoutError(LLMError):
    """Raised when request times out."""
    pass


class LLMResponseError(LLMError):
    """Raised when response is malformed or invalid."""
    pass


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Implementations must provide:
    - _call_api: Make the actual API call
    - estimate_tokens: Estimate token count for text
    """

    def __init__(self, config: LLMProviderConfig, retry_config: Optional[Dict] = None):
        """Initialize the provider.

        Args:
            config: Provider-specific configuration.
            retry_config: Retry settings (max_retries, base_delay, max_delay).
        """
        self.config = config
        self.retry_config = retry_config or {
            "max_retries": 5,
            "base_delay": 2.0,
            "max_delay": 60.0
        }
        self._total_input_tokens = 0
        self._total_output_tokens = 0
        self._total_calls = 0

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider."""
        pass

    @abstractmethod
    def _call_api(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        require_json: bool = False,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        """Make the actual API call.

        Args:
            messages: List of messages in the conversation.
            temperature: Sampling temperature (uses config default if None).
            max_tokens: Maximum tokens in response (uses config default if None).
            require_json: If True, request JSON response format.
            timeout: Request timeout in seconds (uses config default if None).

        Returns:
            LLMResponse with the generated content.

        Raises:
            LLMRateLimitError: If rate limit is hit.
            LLMTimeoutError: If request times out.
            LLMResponseError: If response is invalid.
            LLMError: For other errors.
        """
        pass

    @abstractmethod
    def estimate_tokens(self, text: str) -> int:
        """Estimate the number of tokens in the text."""
        pass

    def call(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        require_json: bool = False,
        timeout: Optional[float] = None
    ) -> str:
        """Make a single LLM call with system and user prompts.

        Returns:
            Generated text content.
        """
        messages = [
            Message(role=MessageRole.SYSTEM, content=system_prompt),
            Message(role=MessageRole.USER, content=user_prompt)
        ]
        response = self._call_with_retry(messages, temperature, max_tokens, require_json, timeout)
        return response.content

    def call_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """Make an LLM call expecting JSON response.

        Returns:
            Parsed JSON response as dictionary.

        Raises:
            LLMResponseError: If response is not valid JSON.
        """
        content = self.call(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            require_json=True,
            timeout=timeout
        )
        return parse_json_content(content)

    def _call_with_retry(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        require_json: bool = False,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        """Make API call with retry logic.

        Uses exponential backoff for rate limits and transient errors.
        """
        max_retries = self.retry_config["max_retries"]
        base_delay = self.retry_config["base_delay"]
        max_delay = self.retry_config["max_delay"]

        last_error = None
        start_time = time.time()

        for attempt in range(max_retries):
            start_time = time.time()
            try:
                response = self._call_api(messages, temperature, max_tokens, require_json, timeout)

                self._total_input_tokens += response.input_tokens
                self._total_output_tokens += response.output_tokens
                self._total_calls += 1

                duration_ms = int((time.time() - start_time) * 1000)
                log_llm_call(
                    logger=logger,
                    provider=self.provider_name,
                    model=response.model or self.config.model,
                    input_tokens=response.input_tokens,
                    output_tokens=response.output_tokens,
                    duration_ms=duration_ms,
                    success=True
                )

                return response

            except (LLMRateLimitError, LLMTimeoutError) as e:
                last_error = e
                if attempt + 1 >= max_retries:
                    break
                delay = min(base_delay * (2 ** attempt), max_delay)
                logger.warning(
                    f"{type(e).__name__}, retrying in {delay}s (attempt {attempt + 1}/{max_retries})",
                    extra_data={"provider": self.provider_name, "delay": delay}
                )
                time.sleep(delay)

            except LLMError as e:
                # Malformed responses are not retried
                duration_ms = int((time.time() - start_time) * 1000)
                log_llm_call(
                    logger=logger,
                    provider=self.provider_name,
                    model=self.config.model,
                    input_tokens=0,
                    output_tokens=0,
                    duration_ms=duration_ms,
                    success=False,
                    error=str(e)
                )
                raise

        duration_ms = int((time.time() - start_time) * 1000)
        log_llm_call(
            logger=logger,
            provider=self.provider_name,
            model=self.config.model,
            input_tokens=0,
            output_tokens=0,
            duration_ms=duration_ms,
            success=False,
            error=f"Max retries ({max_retries}) exhausted"
        )
        raise last_error or LLMError(f"Max retries ({max_retries}) exhausted")

    def get_usage_stats(self) -> Dict[str, int]:
        """Get cumulative usage statistics."""
        return {
            "total_input_tokens": self._total_input_tokens,
            "total_output_tokens": self._total_output_tokens,
            "total_tokens": self._total_input_tokens + self._total_output_tokens,
            "total_calls": self._total_calls
        }

    def reset_usage_stats(self) -> None:
        """Reset usage statistics."""
        self._total_input_tokens = 0
        self._total_output_tokens = 0
        self._total_calls = 0


def parse_json_content(content: str) -> Dict[str, Any]:
    """Parse a JSON object out of a completion.

    Accepts bare JSON, fenced ```json blocks, or the first {...} span.

    Raises:
        LLMResponseError: If no JSON object can be recovered.
    """
    candidates = [content]
    if "```json" in content:
        candidates.append(content.split("```json")[1].split("```")[0].strip())
    elif "```" in content:
        candidates.append(content.split("```")[1].split("```")[0].strip())
    match = re.search(r"\{[\s\S]*\}", content)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise LLMResponseError(f"Failed to parse JSON response\nContent: {content[:500]}")


_provider_registry: Dict[str, Type[LLMProvider]] = {}


def register_provider(name: str):
    """Decorator to register an LLM provider class."""
    def decorator(cls: Type[LLMProvider]):
        _provider_registry[name] = cls
        return cls
    return decorator


def get_provider(name: str, config: LLMProviderConfig, retry_config: Optional[Dict] = None) -> LLMProvider:
    """Get an LLM provider instance by name.

    Raises:
        ValueError: If provider name is unknown.
    """
    if name not in _provider_registry:
        available = ", ".join(_provider_registry.keys())
        raise ValueError(f"Unknown LLM provider: {name}. Available: {available}")

    return _provider_registry[name](config, retry_config)


def create_provider_from_config(llm_config: LLMConfig, role: str = "engine") -> LLMProvider:
    """Create an LLM provider from configuration.

    Args:
        llm_config: LLM configuration section.
        role: Which role to use ("engine" or "oracle").

    Returns:
        Initialized LLM provider for the specified role. The oracle role
        gets a single attempt per call; its failures are absorbed by the
        lexical fallback instead of retried.
    """
    if role == "oracle":
        provider_name = llm_config.get_oracle_provider()
        retry_config = {"max_retries": 1, "base_delay": 0.0, "max_delay": 0.0}
    else:
        provider_name = llm_config.get_engine_provider()
        retry_config = {
            "max_retries": llm_config.max_retries,
            "base_delay": llm_config.base_delay,
            "max_delay": llm_config.max_delay
        }

    provider_config = llm_config.get_provider_config(provider_name)
    logger.info(f"Using '{provider_name}' provider for {role}")
    return get_provider(provider_name, provider_config, retry_config)
