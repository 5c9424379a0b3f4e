"""
Content translator using LLM providers.

Defines the provider-neutral ``TranslationProvider`` interface the queue
consumes and an LLM-backed implementation of it.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from translate_cms_ai.config import DEFAULT_SYSTEM_PROMPT
from translate_cms_ai.llm.base import LLMProvider
from translate_cms_ai.llm.echo import PAYLOAD_MARKER

LANGUAGE_NAMES = {
    "ar": "Arabic",
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "it": "Italian",
    "nl": "Dutch",
    "no": "Norwegian",
    "nb": "Norwegian",
    "pl": "Polish",
    "pt": "Portuguese",
    "ru": "Russian",
    "uk": "Ukrainian",
}

_BOLD = re.compile(r"(?<![\w*])\*\*([^*\n]+?)\*\*(?![\w*])")
_UNDERLINE = re.compile(r"(?<![\w-])__([^_\n]+?)__(?![\w-])")
# Tags and shortcodes; emphasis is only unwrapped in the text between them
_MARKUP_TOKEN = re.compile(r"(<[^>]*>|\[[^\]\n]*\])")
_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\n(.*)\n```$", re.DOTALL)
_EXPLANATION_LINE = re.compile(r"^(the|a|an)\s+(most|common|direct|appropriate|best)", re.IGNORECASE)
_NON_LATIN = re.compile(r"[\u0600-\u06FF\u0400-\u04FF]")
_TITLE_BOLD = re.compile(r"\*\*([^*]+)\*\*|__([^_]+)__")
_PARENTHETICAL = re.compile(r"\s*\([^)]*\)\s*")


@dataclass
class TranslationResult:
    """Result of a translation call."""

    translated_text: str
    tokens_used: int = 0
    model_used: str = ""


class TranslationProvider(ABC):
    """Uniform interface the translation queue talks to."""

    @abstractmethod
    async def translate_text(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        instructions: str | None = None,
    ) -> TranslationResult:
        """
        Translate text.

        Raises:
            ProviderQuotaError: If the provider is rate limited; the caller may retry.
            ProviderError: For permanent failures.
        """
        ...

    async def translate_title(self, title: str, source_lang: str, target_lang: str) -> TranslationResult:
        """Translate a short title. Defaults to ``translate_text``."""
        return await self.translate_text(title, source_lang, target_lang)

    async def close(self) -> None:
        """Release provider resources."""
        return None


def language_name(code: str) -> str:
    """Human name for a language code, or the code itself."""
    return LANGUAGE_NAMES.get(code.lower().split("-")[0], code)


def clean_translated_content(text: str) -> str:
    """Strip markdown emphasis and code fences a model adds around HTML."""
    text = text.replace(PAYLOAD_MARKER, "").strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    parts = _MARKUP_TOKEN.split(text)
    for i in range(0, len(parts), 2):
        parts[i] = _UNDERLINE.sub(r"\1", _BOLD.sub(r"\1", parts[i]))
    return "".join(parts)


def clean_translated_title(raw: str, original: str) -> str:
    """
    Pick the translated title out of a model answer.

    Skips explanation lines, unwraps bold markers and drops parentheticals.
    Falls back to ``original`` when nothing usable remains.
    """
    lines = [line.strip() for line in raw.replace(PAYLOAD_MARKER, "").split("\n") if line.strip()]

    for line in lines:
        if _EXPLANATION_LINE.match(line):
            continue
        if len(lines) > 1 and ":" in line and not _NON_LATIN.search(line):
            continue

        bold = _TITLE_BOLD.search(line)
        if bold:
            line = bold.group(1) or bold.group(2)

        line = re.sub(r"[*_`]", "", line)
        line = _PARENTHETICAL.sub(" ", line).strip().strip("\"'“”«»").strip()

        lowered = line.lower()
        if line and "translation" not in lowered and "context" not in lowered:
            return line

    return original


class ContentTranslator(TranslationProvider):
    """
    Translates WordPress content with an LLM provider.

    The system prompt asks the model to keep markup, shortcodes, block
    comments and the blank-line block separators intact.
    """

    def __init__(
        self,
        provider: LLMProvider,
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        temperature: float = 0.3,
        max_tokens: int = 8192,
    ):
        """
        Initialize content translator.

        Args:
            provider: LLM provider to send requests to.
            system_prompt: System prompt for body translation.
            temperature: Sampling temperature.
            max_tokens: Maximum output tokens.
        """
        self._provider = provider
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def close(self) -> None:
        """Close the underlying LLM client."""
        await self._provider.close()

    async def translate_text(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        instructions: str | None = None,
    ) -> TranslationResult:
        """
        Translate combined content blocks.

        Args:
            text: Blocks joined by blank lines.
            source_lang: Source language code.
            target_lang: Target language code.
            instructions: Extra instructions appended to the system prompt.

        Returns:
            TranslationResult with the translated text and tokens used.
        """
        if not text.strip():
            return TranslationResult(translated_text="", model_used=self._provider.model)

        system_prompt = self._system_prompt
        if instructions:
            system_prompt = f"{system_prompt}\n\n{instructions}"

        user_prompt = (
            f"Translate the text after the marker from {language_name(source_lang)} "
            f"to {language_name(target_lang)}. Do not repeat the marker.\n\n"
            f"{PAYLOAD_MARKER}\n{text}"
        )

        response = await self._provider.chat(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        return TranslationResult(
            translated_text=clean_translated_content(response.content),
            tokens_used=response.total_tokens,
            model_used=response.model,
        )

    async def translate_title(self, title: str, source_lang: str, target_lang: str) -> TranslationResult:
        """
        Translate a post title.

        Returns:
            TranslationResult whose text is the cleaned title, or the original
            title if the answer held nothing usable.
        """
        if not title.strip():
            return TranslationResult(translated_text=title, model_used=self._provider.model)

        user_prompt = (
            f"Translate ONLY this title from {language_name(source_lang)} to "
            f"{language_name(target_lang)}. Return ONLY the translated title with "
            f"no explanation and no quotes.\n\n{PAYLOAD_MARKER}\n{title}"
        )

        response = await self._provider.chat(
            system_prompt="You translate website titles.",
            user_prompt=user_prompt,
            temperature=self._temperature,
            max_tokens=256,
        )

        return TranslationResult(
            translated_text=clean_translated_title(response.content, title),
            tokens_used=response.total_tokens,
            model_used=response.model,
        )
