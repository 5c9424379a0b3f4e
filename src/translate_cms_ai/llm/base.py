"""
LLM provider interface.

A provider turns chat messages into one completion. Rate limits surface as
``ProviderQuotaError`` and every other failure as ``ProviderError``;
providers never retry, the translation queue owns that decision.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMResponse:
    """One completion and its token usage."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        """Tokens billed for the request."""
        return self.input_tokens + self.output_tokens


class LLMProvider(ABC):
    """Chat-completion backend used by the content translator."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider name, recorded with provider errors."""
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        """Resolved model identifier."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Request a completion.

        Args:
            messages: Chat messages with 'role' and 'content' keys.
            temperature: Sampling temperature.
            max_tokens: Output token cap.
            **kwargs: Provider-specific request options.

        Raises:
            ProviderQuotaError: If the request was rejected for quota or rate limits.
            ProviderError: For any other provider failure.
        """
        ...

    async def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        """Send one system and one user message."""
        return await self.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )

    async def close(self) -> None:
        """Release network resources held by the provider."""
        return None
