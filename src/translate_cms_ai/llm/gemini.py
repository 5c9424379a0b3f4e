"""
Gemini LLM provider.

Talks to Google's OpenAI-compatible Gemini endpoint with the same client
and error mapping as the OpenRouter provider.
"""

from __future__ import annotations

from translate_cms_ai.llm.openrouter import OpenRouterProvider


class GeminiProvider(OpenRouterProvider):
    """Gemini via the OpenAI-compatible API. Requires a Google AI API key."""

    MODELS = {
        "default": "gemini-2.5-flash",
        "fast": "gemini-2.5-flash-lite",
        "quality": "gemini-2.5-pro",
    }

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
    PROVIDER_NAME = "gemini"
