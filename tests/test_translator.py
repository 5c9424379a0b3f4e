"""Tests for the LLM-backed content translator."""

from __future__ import annotations

from typing import Any

from translate_cms_ai.llm.base import LLMProvider, LLMResponse
from translate_cms_ai.llm.echo import PAYLOAD_MARKER, EchoProvider
from translate_cms_ai.translation.translator import (
    ContentTranslator,
    clean_translated_content,
    clean_translated_title,
    language_name,
)


class CannedProvider(LLMProvider):
    """Returns a fixed answer and records the prompts it was sent."""

    def __init__(self, answer: str):
        self.answer = answer
        self.messages: list[list[dict[str, str]]] = []

    @property
    def name(self) -> str:
        return "canned"

    @property
    def model(self) -> str:
        return "canned-1"

    async def complete(self, messages, *, temperature=0.3, max_tokens=4096, **kwargs: Any) -> LLMResponse:
        self.messages.append(messages)
        return LLMResponse(content=self.answer, input_tokens=7, output_tokens=5, model=self.model)


async def test_echo_translation_is_identity():
    translator = ContentTranslator(EchoProvider())
    text = "<p>Hello world</p>\n\nSecond block"

    result = await translator.translate_text(text, "en", "fr")

    assert result.translated_text == text
    assert result.tokens_used == 0


async def test_prompt_names_languages_and_marks_payload():
    provider = CannedProvider("<p>Bonjour</p>")
    translator = ContentTranslator(provider, system_prompt="Keep tags.")

    result = await translator.translate_text("<p>Hello</p>", "en", "fr", instructions="Use formal tone.")

    system, user = provider.messages[0]
    assert system["content"] == "Keep tags.\n\nUse formal tone."
    assert "from English to French" in user["content"]
    assert user["content"].endswith(f"{PAYLOAD_MARKER}\n<p>Hello</p>")
    assert result.translated_text == "<p>Bonjour</p>"
    assert result.tokens_used == 12
    assert result.model_used == "canned-1"


async def test_blank_text_skips_the_provider():
    provider = CannedProvider("unused")
    result = await ContentTranslator(provider).translate_text("  \n ", "en", "fr")

    assert result.translated_text == ""
    assert provider.messages == []


async def test_title_answer_is_cleaned():
    provider = CannedProvider("Here is the translation:\n**Notre histoire**")
    result = await ContentTranslator(provider).translate_title("Our story", "en", "fr")

    assert result.translated_text == "Notre histoire"


def test_clean_content_strips_fences_and_emphasis():
    assert clean_translated_content("```html\n<p>**Bonjour** le monde</p>\n```") == "<p>Bonjour le monde</p>"
    assert clean_translated_content("__Titre__ ici") == "Titre ici"


def test_clean_title_drops_explanations():
    assert clean_translated_title("The most common translation is below", "Home") == "Home"
    assert clean_translated_title('"Accueil" (Home page)', "Home") == "Accueil"
    assert clean_translated_title("", "Home") == "Home"


def test_language_name():
    assert language_name("nb") == "Norwegian"
    assert language_name("pt-BR") == "Portuguese"
    assert language_name("xx") == "xx"


async def test_class_names_with_double_underscores_survive():
    doc = (
        '<div class="wp-block-cover__inner-container">'
        '<span class="wp-block-cover__background">Hello there</span></div>'
    )
    result = await ContentTranslator(EchoProvider()).translate_text(doc, "en", "fr")

    assert result.translated_text == doc


def test_emphasis_is_only_unwrapped_in_text():
    text = '<p class="__lead__">**Bonjour** [vc_btn el_class="btn__primary"] __monde__</p>'
    assert clean_translated_content(text) == '<p class="__lead__">Bonjour [vc_btn el_class="btn__primary"] monde</p>'
    assert clean_translated_content("snake__case__name stays") == "snake__case__name stays"
