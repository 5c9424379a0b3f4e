"""
Echo LLM provider.

Returns the user prompt's payload unchanged. Used for dry runs and for
checking that content survives extraction and restoration untouched.
"""

from __future__ import annotations

from typing import Any

from translate_cms_ai.llm.base import LLMProvider, LLMResponse

# Marker separating instructions from the text to translate in user prompts
PAYLOAD_MARKER = "<<<TEXT>>>"


class EchoProvider(LLMProvider):
    """Identity provider: the "translation" is the original text."""

    def __init__(self, model: str = "echo"):
        self._model_name = model

    @property
    def name(self) -> str:
        return "echo"

    @property
    def model(self) -> str:
        return self._model_name

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        prompt = messages[-1]["content"] if messages else ""
        _, marker, payload = prompt.partition(PAYLOAD_MARKER)
        content = payload if marker else prompt
        return LLMResponse(content=content.strip(), model=self._model_name, metadata={"provider": "echo"})
