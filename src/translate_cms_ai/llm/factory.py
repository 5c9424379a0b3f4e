"""
LLM provider factory.

Creates the appropriate LLM provider based on configuration.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from translate_cms_ai.errors import ConfigurationError
from translate_cms_ai.llm.base import LLMProvider


class LLMProviderType(str, Enum):
    """Available LLM provider types."""

    OPENROUTER = "openrouter"
    GEMINI = "gemini"
    ECHO = "echo"


def create_llm_provider(
    provider_type: LLMProviderType | str,
    *,
    api_key: str | None = None,
    model: str = "default",
    **kwargs: Any,
) -> LLMProvider:
    """
    Create an LLM provider instance.

    Args:
        provider_type: Type of provider to create (openrouter, gemini or echo).
        api_key: API key (required for openrouter and gemini, ignored for echo).
        model: Model name or alias.
        **kwargs: Additional provider-specific options.

    Returns:
        LLMProvider instance.

    Raises:
        ConfigurationError: If provider_type is invalid or required config is missing.

    Examples:
        # OpenRouter (pay-per-token)
        provider = create_llm_provider(
            "openrouter",
            api_key="sk-or-...",
            model="google/gemini-2.5-flash"
        )

        # Gemini through Google's OpenAI-compatible endpoint
        provider = create_llm_provider("gemini", api_key="AIza...", model="fast")
    """
    # Normalize provider type
    if isinstance(provider_type, str):
        provider_type = provider_type.lower().replace("_", "-")
        try:
            provider_type = LLMProviderType(provider_type)
        except ValueError:
            valid = [p.value for p in LLMProviderType]
            raise ConfigurationError(
                f"Invalid provider type: {provider_type}. Valid options: {valid}"
            ) from None

    if provider_type == LLMProviderType.ECHO:
        from translate_cms_ai.llm.echo import EchoProvider

        return EchoProvider()

    if not api_key:
        raise ConfigurationError(f"{provider_type.value} provider requires an API key")

    if provider_type == LLMProviderType.OPENROUTER:
        from translate_cms_ai.llm.openrouter import OpenRouterProvider

        return OpenRouterProvider(api_key=api_key, model=model, **kwargs)

    if provider_type == LLMProviderType.GEMINI:
        from translate_cms_ai.llm.gemini import GeminiProvider

        return GeminiProvider(api_key=api_key, model=model, **kwargs)

    raise ConfigurationError(f"Unknown provider type: {provider_type}")
