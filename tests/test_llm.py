"""Tests for LLM providers and the provider factory."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from translate_cms_ai.errors import ConfigurationError, ProviderError, ProviderQuotaError
from translate_cms_ai.llm.echo import PAYLOAD_MARKER, EchoProvider
from translate_cms_ai.llm.factory import create_llm_provider
from translate_cms_ai.llm.gemini import GeminiProvider
from translate_cms_ai.llm.openrouter import OpenRouterProvider, is_quota_error

REQUEST = httpx.Request("POST", "https://openrouter.test/api/v1/chat/completions")


def status_error(status: int, message: str = "error") -> openai.APIStatusError:
    response = httpx.Response(status, request=REQUEST)
    if status == 429:
        return openai.RateLimitError(message, response=response, body=None)
    return openai.APIStatusError(message, response=response, body=None)


def stub_completion(provider, outcome):
    async def create(**kwargs):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    provider._client.chat.completions.create = create


class TestQuotaDetection:
    def test_rate_limit_status(self):
        assert is_quota_error(status_error(429))

    def test_quota_wording(self):
        assert is_quota_error(status_error(403, "RESOURCE_EXHAUSTED: daily quota"))

    def test_other_errors(self):
        assert not is_quota_error(status_error(500, "Internal error"))
        assert not is_quota_error(openai.APIConnectionError(request=REQUEST))


class TestOpenRouterProvider:
    async def test_rate_limit_becomes_quota_error(self):
        provider = OpenRouterProvider(api_key="sk-test")
        stub_completion(provider, status_error(429, "Too Many Requests"))

        with pytest.raises(ProviderQuotaError) as exc_info:
            await provider.chat("system", "user")

        assert exc_info.value.provider == "openrouter"

    async def test_server_error_is_permanent(self):
        provider = OpenRouterProvider(api_key="sk-test")
        stub_completion(provider, status_error(500, "Internal error"))

        with pytest.raises(ProviderError) as exc_info:
            await provider.chat("system", "user")

        assert not isinstance(exc_info.value, ProviderQuotaError)

    async def test_successful_completion(self):
        provider = OpenRouterProvider(api_key="sk-test", model="fast")
        stub_completion(
            provider,
            SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content=" Bonjour "), finish_reason="stop")],
                usage=SimpleNamespace(prompt_tokens=11, completion_tokens=3),
            ),
        )

        response = await provider.chat("system", "user")

        assert response.content == "Bonjour"
        assert response.total_tokens == 14
        assert response.model == "google/gemini-2.5-flash-lite"
        assert response.metadata["finish_reason"] == "stop"

    async def test_empty_choices(self):
        provider = OpenRouterProvider(api_key="sk-test")
        stub_completion(provider, SimpleNamespace(choices=[], usage=None))

        with pytest.raises(ProviderError):
            await provider.chat("system", "user")


async def test_echo_returns_payload():
    response = await EchoProvider().chat("system", f"Translate this\n\n{PAYLOAD_MARKER}\n<p>Hi</p>")
    assert response.content == "<p>Hi</p>"
    assert response.total_tokens == 0


class TestFactory:
    def test_echo_needs_no_key(self):
        assert isinstance(create_llm_provider("echo"), EchoProvider)

    def test_gemini_alias(self):
        provider = create_llm_provider("GEMINI", api_key="AIza-test", model="quality")
        assert isinstance(provider, GeminiProvider)
        assert provider.model == "gemini-2.5-pro"
        assert provider.name == "gemini"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="Invalid provider type"):
            create_llm_provider("mystery", api_key="x")

    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            create_llm_provider("openrouter")
