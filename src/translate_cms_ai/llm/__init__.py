"""
LLM provider abstraction layer.

Supports multiple LLM backends:
- OpenRouter (default): Pay-per-token via OpenRouter API
- Gemini: Google's OpenAI-compatible endpoint
- Echo: Returns text unchanged, for dry runs
"""

from translate_cms_ai.llm.base import LLMProvider, LLMResponse
from translate_cms_ai.llm.factory import LLMProviderType, create_llm_provider

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LLMProviderType",
    "create_llm_provider",
]
