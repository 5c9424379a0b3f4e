"""
OpenRouter LLM provider.

Uses the OpenAI-compatible API via OpenRouter to access multiple LLM providers.
Rate-limit responses surface as ``ProviderQuotaError`` so the queue can back
off; the provider itself never retries.
"""

from __future__ import annotations

from typing import Any

import openai
from openai import AsyncOpenAI

from translate_cms_ai.errors import ProviderError, ProviderQuotaError
from translate_cms_ai.llm.base import LLMProvider, LLMResponse

_QUOTA_MARKERS = ("quota", "resource_exhausted", "rate limit", "too many requests")


def is_quota_error(error: Exception) -> bool:
    """True if an OpenAI-compatible API error means quota or rate limiting."""
    if isinstance(error, openai.RateLimitError):
        return True
    if isinstance(error, openai.APIStatusError) and error.status_code == 429:
        return True
    message = str(error).lower()
    return any(marker in message for marker in _QUOTA_MARKERS)


class OpenRouterProvider(LLMProvider):
    """
    OpenRouter LLM provider.

    Uses OpenRouter's unified API to access Claude, GPT, Gemini, DeepSeek, etc.
    Requires an OpenRouter API key and charges per token.
    """

    # Model aliases for convenience
    MODELS = {
        "default": "google/gemini-2.5-flash",
        "fast": "google/gemini-2.5-flash-lite",
        "quality": "anthropic/claude-sonnet-4.5",
        "deepseek": "deepseek/deepseek-chat",
    }

    BASE_URL = "https://openrouter.ai/api/v1"
    PROVIDER_NAME = "openrouter"

    def __init__(
        self,
        api_key: str,
        model: str = "default",
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        """
        Initialize provider.

        Args:
            api_key: API key.
            model: Model key (from MODELS) or full model name.
            base_url: API base URL. Defaults to the provider's endpoint.
            timeout: Request timeout in seconds.
        """
        self._model_name = self.MODELS.get(model, model)
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or self.BASE_URL,
            timeout=timeout,
            max_retries=0,
        )

    @property
    def name(self) -> str:
        """Provider name."""
        return self.PROVIDER_NAME

    @property
    def model(self) -> str:
        """Current model name."""
        return self._model_name

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            messages: List of message dicts.
            temperature: Sampling temperature.
            max_tokens: Maximum output tokens.
            **kwargs: Additional options passed to the API.

        Returns:
            LLMResponse with content and usage stats.

        Raises:
            ProviderQuotaError: On rate limiting or exhausted quota.
            ProviderError: On any other API failure.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self._model_name,
                messages=messages,  # type: ignore[arg-type]
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except openai.APIError as e:
            if is_quota_error(e):
                raise ProviderQuotaError(
                    f"{self.name} quota exceeded: {e}", provider=self.name
                ) from e
            raise ProviderError(f"{self.name} request failed: {e}", provider=self.name) from e

        if not response.choices:
            raise ProviderError(f"{self.name} returned no choices", provider=self.name)

        content = response.choices[0].message.content or ""
        usage = response.usage

        return LLMResponse(
            content=content.strip(),
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=self._model_name,
            metadata={
                "provider": self.name,
                "finish_reason": response.choices[0].finish_reason,
            },
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.close()
