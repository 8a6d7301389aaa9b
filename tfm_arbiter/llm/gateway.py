"""OpenAI-compatible chat-completions gateway provider."""

from typing import List, Optional

import requests

from ..models import Message, LLMResponse
from ..utils.text_processing import estimate_tokens
from .provider import (
    LLMProvider,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
    LLMResponseError,
    register_provider,
)

DEFAULT_BASE_URL = "https://ai.gateway.lovable.dev/v1"


@register_provider("gateway")
class GatewayProvider(LLMProvider):
    """Provider for any gateway speaking the /chat/completions protocol."""

    @property
    def provider_name(self) -> str:
        return "gateway"

    @property
    def endpoint(self) -> str:
        base_url = (self.config.base_url or DEFAULT_BASE_URL).rstrip("/")
        return f"{base_url}/chat/completions"

    def _call_api(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        require_json: bool = False,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        if not self.config.api_key:
            raise LLMError("Gateway API key not configured. Set llm.providers.gateway.api_key in config.json")

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature if temperature is not None else self.config.temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if require_json:
            payload["response_format"] = {"type": "json_object"}

        api_timeout = timeout if timeout is not None else self.config.timeout

        try:
            response = requests.post(self.endpoint, headers=headers, json=payload, timeout=api_timeout)
        except requests.exceptions.Timeout as e:
            raise LLMTimeoutError(f"Gateway request timed out after {api_timeout}s: {e}")
        except requests.exceptions.RequestException as e:
            raise LLMError(f"Gateway request failed: {e}")

        if response.status_code == 429:
            raise LLMRateLimitError("Gateway rate limit exceeded")
        if response.status_code in (502, 503, 504):
            raise LLMTimeoutError(f"Gateway unavailable ({response.status_code})")
        if not response.ok:
            raise LLMError(f"Gateway error {response.status_code}: {response.text[:300]}")

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMResponseError(f"Malformed gateway response: {e}")

        if content is None:
            raise LLMResponseError("Gateway returned empty content")

        usage = data.get("usage") or {}
        return LLMResponse(
            content=content,
            model=data.get("model", self.config.model),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        )

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text)
