"""
Text filters shared by extraction and restoration.

Strips builder boilerplate that should never reach a translator and
implements the block separator convention.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

# Lower-cased single labels that page builders render as buttons or links
UI_LABELS = frozenset(
    {
        "button",
        "more",
        "read more",
        "learn more",
        "les mer",
        "lees meer",
        "читать далее",
        "подробнее",
    }
)

_DIVIDER_SHORTCODE = re.compile(r"\[divider[^\]]*\]|\[/divider\]", re.IGNORECASE)
_BLANK_LINES = re.compile(r"\n[ \t\r\f\v]*\n\s*")
_SEGMENT_SPLIT = re.compile(r"\n\s*\n")
_SHORTCODE_TAG = re.compile(r"\[\/?[a-zA-Z_][\w-]*(?:\s[^\]]*)?\/?\]")
_LEADING_SERVICE = re.compile(r"(?:\s|\[divider[^\]]*\]|\[/divider\])*", re.IGNORECASE)
_TRAILING_SERVICE = re.compile(r"(?:\s|\[divider[^\]]*\]|\[/divider\])*\Z", re.IGNORECASE)


def filter_service_content(text: str, min_length: int = 3) -> str:
    """
    Remove decorative boilerplate from a candidate fragment.

    Args:
        text: Raw fragment.
        min_length: Fragments shorter than this are dropped unless all-caps.

    Returns:
        The cleaned fragment, or an empty string if nothing translatable remains.
    """
    cleaned = _DIVIDER_SHORTCODE.sub("", text).strip()
    if not cleaned:
        return ""

    if cleaned.lower() in UI_LABELS:
        return ""

    if len(cleaned) < min_length and cleaned != cleaned.upper():
        return ""

    return cleaned


def split_service_margins(text: str) -> tuple[str, str, str]:
    """
    Split a fragment into leading boilerplate, body and trailing boilerplate.

    Boilerplate is whitespace and divider shortcodes at either end, the parts
    ``filter_service_content`` strips before the body reaches a translator.
    """
    lead = _LEADING_SERVICE.match(text).end()
    trail = _TRAILING_SERVICE.search(text, lead).start()
    return text[:lead], text[lead:trail], text[trail:]


def visible_text(markup: str) -> str:
    """Text a reader would see, with tags and shortcode delimiters removed."""
    markup = _SHORTCODE_TAG.sub(" ", markup)
    if "<" not in markup:
        return markup.strip()
    return BeautifulSoup(markup, "html.parser").get_text(" ", strip=True)


def is_translatable_markup(markup: str, min_length: int = 3) -> bool:
    """True if markup-bearing text has visible content that survives the filter."""
    return bool(filter_service_content(visible_text(markup), min_length))


def collapse_blank_lines(text: str) -> str:
    """Collapse blank lines so a block never contains the separator."""
    return _BLANK_LINES.sub("\n", text)


def split_segments(text: str) -> list[str]:
    """Split combined translated text back into per-block segments."""
    return [segment.strip() for segment in _SEGMENT_SPLIT.split(text) if segment.strip()]
