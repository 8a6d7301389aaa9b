"""Mock LLM provider for testing.

Returns queued responses instead of calling an API.
"""

from typing import List, Optional, Union

from tfm_arbiter.config import LLMProviderConfig
from tfm_arbiter.llm.provider import LLMProvider
from tfm_arbiter.models import LLMResponse, Message


class MockLLMProvider(LLMProvider):
    """Provider that replays scripted replies.

    Each queued item is either a string (returned as content) or an
    exception instance (raised from the API call).
    """

    def __init__(
        self,
        responses: Optional[List[Union[str, Exception]]] = None,
        tokens_per_call: int = 0,
        retry_config: Optional[dict] = None,
    ):
        super().__init__(
            LLMProviderConfig(model="mock-model"),
            retry_config or {"max_retries": 1, "base_delay": 0.0, "max_delay": 0.0},
        )
        self.responses = list(responses or [])
        self.tokens_per_call = tokens_per_call
        self.call_history = []

    @property
    def provider_name(self) -> str:
        return "mock"

    def queue(self, *responses: Union[str, Exception]) -> None:
        self.responses.extend(responses)

    def _call_api(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        require_json: bool = False,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        self.call_history.append({
            "system_prompt": messages[0].content,
            "user_prompt": messages[-1].content,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "require_json": require_json,
            "timeout": timeout,
        })
        if not self.responses:
            return LLMResponse(content="This is a mocked LLM response for testing purposes.")

        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return LLMResponse(
            content=response,
            model="mock-model",
            input_tokens=self.tokens_per_call // 2,
            output_tokens=self.tokens_per_call - self.tokens_per_call // 2,
        )

    def estimate_tokens(self, text: str) -> int:
        return len(text) // 4
