"""
Decoders, encoders and walkers for page-builder encodings.

Tree formats (BeBuilder, Elementor) live in post meta and are decoded into
a ``StructuredPayload``. Inline formats (Gutenberg block comments, WPBakery
shortcodes) are scanned into delimiter regions over the post body.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import phpserialize

from translate_cms_ai.content.base import ContentFormat
from translate_cms_ai.errors import ParseError, SegmentMismatchError

logger = logging.getLogger(__name__)

BEBUILDER_META_KEY = "mfn-page-items"
ELEMENTOR_META_KEY = "_elementor_data"

META_KEYS = {
    ContentFormat.BEBUILDER: BEBUILDER_META_KEY,
    ContentFormat.ELEMENTOR: ELEMENTOR_META_KEY,
}

TREE_FORMATS = (ContentFormat.BEBUILDER, ContentFormat.ELEMENTOR)
INLINE_FORMATS = (ContentFormat.GUTENBERG, ContentFormat.WPBAKERY)

BEBUILDER_FIELDS = ("text", "title", "label", "content", "description", "button_text", "placeholder")
BEBUILDER_STRUCTURAL = frozenset(
    {"section", "wrap", "column", "placeholder", "image", "row", "grid", "divider", "spacer"}
)
ELEMENTOR_FIELDS = ("text", "title", "description", "placeholder", "button_text", "label")
ELEMENTOR_MARKUP_FIELDS = ("html", "editor", "editor_content", "content")

DEFAULT_MAX_DEPTH = 20
DEFAULT_MAX_NODES = 10_000

_GUTENBERG_SIGNATURE = re.compile(r"<!--\s+/?wp:")
_WPBAKERY_SIGNATURE = re.compile(r"\[/?vc_\w+")

# Same shape as the delimiter WordPress' own block parser accepts
_GUTENBERG_TOKEN = re.compile(
    r"<!--\s+(?P<closer>/)?wp:(?P<name>[a-z][a-z0-9_-]*(?:/[a-z][a-z0-9_-]*)?)"
    r"\s+(?P<attrs>\{.*?\}\s+)?(?P<void>/)?-->",
    re.DOTALL,
)
_WPBAKERY_TOKEN = re.compile(r"\[(?P<closer>/)?vc_(?P<name>\w+)(?P<attrs>[^\]]*)\]")


class PayloadEncoding(str, Enum):
    """How a tree payload is stored in post meta."""

    PHP_BASE64_LIST = "php-base64-list"
    PHP_BASE64 = "php-base64"
    PHP_RAW = "php-raw"
    JSON_STRING = "json-string"
    OBJECT = "object"


@dataclass
class StructuredPayload:
    """A decoded tree tagged with its format and storage encoding."""

    format: ContentFormat
    meta_key: str
    tree: Any
    encoding: PayloadEncoding


@dataclass
class TreeField:
    """A candidate text field found while walking a tree."""

    path: tuple[str | int, ...]
    value: str
    markup: bool = False


def has_payload(value: Any) -> bool:
    """True if a meta value carries anything worth decoding."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() not in ("", "[]", "{}")
    if isinstance(value, (list, dict)):
        return len(value) > 0
    return False


def detect_formats(content: str, meta: dict[str, Any]) -> list[ContentFormat]:
    """
    Detect structural encodings by signature.

    Args:
        content: Raw post body.
        meta: Post meta mapping.

    Returns:
        Detected formats in priority order. Empty for plain documents.
    """
    found: list[ContentFormat] = []
    for fmt in TREE_FORMATS:
        if has_payload(meta.get(META_KEYS[fmt])):
            found.append(fmt)
    if _GUTENBERG_SIGNATURE.search(content):
        found.append(ContentFormat.GUTENBERG)
    if _WPBAKERY_SIGNATURE.search(content):
        found.append(ContentFormat.WPBAKERY)
    return found


# ==================== Tree payloads ====================


def _decode_php(text: str, encoding: PayloadEncoding) -> Any:
    if encoding == PayloadEncoding.PHP_RAW:
        raw = text.encode("utf-8")
    else:
        try:
            raw = base64.b64decode(text.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ParseError(f"Invalid base64 payload: {e}") from e
    try:
        return phpserialize.loads(raw, decode_strings=True)
    except (ValueError, TypeError, IndexError) as e:
        raise ParseError(f"Invalid PHP serialized payload: {e}") from e


def decode_payload(content_format: ContentFormat, meta: dict[str, Any]) -> StructuredPayload | None:
    """
    Decode the meta value of a tree format.

    Returns:
        The payload, or None when the meta key is absent or empty.

    Raises:
        ParseError: If the value is present but malformed.
    """
    key = META_KEYS[content_format]
    value = meta.get(key)
    if not has_payload(value):
        return None

    def payload(tree: Any, encoding: PayloadEncoding) -> StructuredPayload:
        if not isinstance(tree, (dict, list)):
            raise ParseError(f"{content_format.label} payload is not a tree", format_name=content_format.value)
        return StructuredPayload(content_format, key, tree, encoding)

    if content_format == ContentFormat.BEBUILDER and isinstance(value, list) and isinstance(value[0], str):
        return payload(_decode_php(value[0], PayloadEncoding.PHP_BASE64_LIST), PayloadEncoding.PHP_BASE64_LIST)

    if isinstance(value, (dict, list)):
        return payload(value, PayloadEncoding.OBJECT)

    if not isinstance(value, str):
        raise ParseError(f"Unsupported {content_format.label} value: {type(value).__name__}")

    text = value.strip()
    if text[:1] in ("[", "{"):
        try:
            return payload(json.loads(text), PayloadEncoding.JSON_STRING)
        except json.JSONDecodeError as e:
            if content_format == ContentFormat.ELEMENTOR:
                raise ParseError(f"Invalid Elementor JSON: {e}", format_name=content_format.value) from e

    if content_format == ContentFormat.ELEMENTOR:
        raise ParseError("Elementor data is not JSON", format_name=content_format.value)

    if text.startswith("a:"):
        return payload(_decode_php(text, PayloadEncoding.PHP_RAW), PayloadEncoding.PHP_RAW)
    return payload(_decode_php(text, PayloadEncoding.PHP_BASE64), PayloadEncoding.PHP_BASE64)


def encode_payload(payload: StructuredPayload) -> Any:
    """Re-encode a payload into the shape it was stored in."""
    if payload.encoding == PayloadEncoding.OBJECT:
        return payload.tree
    if payload.encoding == PayloadEncoding.JSON_STRING:
        return json.dumps(payload.tree, ensure_ascii=False, separators=(",", ":"))

    serialized = phpserialize.dumps(payload.tree, charset="utf-8")
    if payload.encoding == PayloadEncoding.PHP_RAW:
        return serialized.decode("utf-8")

    encoded = base64.b64encode(serialized).decode("ascii")
    if payload.encoding == PayloadEncoding.PHP_BASE64_LIST:
        return [encoded]
    return encoded


def _bebuilder_fields(path: tuple[str | int, ...], node: dict) -> list[TreeField]:
    kind = node.get("type") or node.get("element") or ""
    if str(kind).lower() in BEBUILDER_STRUCTURAL:
        return []
    return [
        TreeField((*path, name), node[name], markup="<" in node[name])
        for name in BEBUILDER_FIELDS
        if isinstance(node.get(name), str) and node[name].strip().lower() not in BEBUILDER_STRUCTURAL
    ]


def _elementor_fields(path: tuple[str | int, ...], node: dict) -> list[TreeField]:
    settings = node.get("settings")
    if not isinstance(settings, dict):
        return []
    found = [
        TreeField((*path, "settings", name), settings[name], markup="<" in settings[name])
        for name in ELEMENTOR_FIELDS
        if isinstance(settings.get(name), str)
    ]
    found.extend(
        TreeField((*path, "settings", name), settings[name], markup=True)
        for name in ELEMENTOR_MARKUP_FIELDS
        if isinstance(settings.get(name), str)
    )
    return found


_FIELD_READERS: dict[ContentFormat, Callable[[tuple[str | int, ...], dict], list[TreeField]]] = {
    ContentFormat.BEBUILDER: _bebuilder_fields,
    ContentFormat.ELEMENTOR: _elementor_fields,
}


def walk_tree(
    payload: StructuredPayload,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_nodes: int = DEFAULT_MAX_NODES,
) -> list[TreeField]:
    """
    Collect allow-listed text fields in document order.

    Uses an explicit stack. Subtrees deeper than ``max_depth`` are skipped.

    Raises:
        ParseError: If more than ``max_nodes`` nodes are visited.
    """
    read_fields = _FIELD_READERS[payload.format]
    fields: list[TreeField] = []
    stack: list[tuple[tuple[str | int, ...], Any, int]] = [((), payload.tree, 0)]
    visited = 0
    skipped = 0

    while stack:
        path, node, depth = stack.pop()
        visited += 1
        if visited > max_nodes:
            raise ParseError(
                f"{payload.format.label} tree exceeds {max_nodes} nodes",
                format_name=payload.format.value,
            )
        if depth > max_depth:
            skipped += 1
            continue

        if isinstance(node, dict):
            fields.extend(read_fields(path, node))
            children = list(node.items())
        elif isinstance(node, list):
            children = list(enumerate(node))
        else:
            continue

        for key, child in reversed(children):
            if isinstance(child, (dict, list)):
                stack.append(((*path, key), child, depth + 1))

    if skipped:
        logger.debug("Skipped %d %s subtrees deeper than %d", skipped, payload.format.label, max_depth)
    return fields


def get_tree_value(tree: Any, path: list[str | int] | tuple[str | int, ...]) -> Any:
    """
    Read the value at ``path``.

    Raises:
        SegmentMismatchError: If the path does not resolve.
    """
    node = tree
    for key in path:
        if not isinstance(node, (dict, list)):
            raise SegmentMismatchError(f"Field path no longer resolves: {list(path)}")
        try:
            node = node[key]
        except (KeyError, IndexError, TypeError) as e:
            raise SegmentMismatchError(f"Field path no longer resolves: {list(path)}") from e
    return node


def set_tree_value(tree: Any, path: list[str | int] | tuple[str | int, ...], value: Any) -> None:
    """Replace the value at ``path`` in place."""
    if not path:
        raise SegmentMismatchError("Empty field path")
    get_tree_value(tree, path)
    parent = get_tree_value(tree, path[:-1])
    parent[path[-1]] = value


# ==================== Inline regions ====================


@dataclass
class Region:
    """A delimited region of the post body."""

    name: str
    start: int
    inner_start: int
    inner_end: int
    end: int
    void: bool = False


@dataclass
class InlineLayout:
    """Text pieces per inline format plus the spans no format claims."""

    pieces: dict[ContentFormat, list[Region]] = field(default_factory=dict)
    spans: list[tuple[int, int]] = field(default_factory=list)
    errors: dict[ContentFormat, ParseError] = field(default_factory=dict)
    claimed: list[tuple[int, int]] = field(default_factory=list)

    @property
    def structured(self) -> bool:
        """True if any inline format claimed part of the body."""
        return bool(self.claimed)


def _build_regions(
    content_format: ContentFormat,
    tokens: list[re.Match],
    *,
    strict: bool,
    max_depth: int,
) -> list[Region]:
    stack: list[Region] = []
    regions: list[Region] = []

    def close_as_void(region: Region) -> None:
        region.inner_start = region.inner_end = region.end
        region.void = True
        regions.append(region)

    for token in tokens:
        name = token.group("name")
        start, end = token.span()

        if token.group("closer"):
            if not any(r.name == name for r in stack):
                if not strict:
                    continue
                raise ParseError(
                    f"Closing {content_format.label} delimiter '{name}' without opener at {start}",
                    format_name=content_format.value,
                )
            while stack[-1].name != name:
                if strict:
                    raise ParseError(
                        f"Unbalanced {content_format.label} delimiter '{stack[-1].name}'",
                        format_name=content_format.value,
                    )
                close_as_void(stack.pop())
            region = stack.pop()
            region.inner_end = start
            region.end = end
            regions.append(region)
            continue

        if "void" in token.groupdict() and token.group("void"):
            regions.append(Region(name, start, end, end, end, void=True))
            continue

        if len(stack) >= max_depth:
            raise ParseError(
                f"{content_format.label} nesting exceeds depth {max_depth}",
                format_name=content_format.value,
            )
        stack.append(Region(name, start, end, end, end))

    if stack:
        if strict:
            raise ParseError(
                f"Unclosed {content_format.label} delimiter '{stack[-1].name}'",
                format_name=content_format.value,
            )
        while stack:
            close_as_void(stack.pop())

    regions.sort(key=lambda r: r.start)
    return regions


def scan_block_comments(content: str, max_depth: int = DEFAULT_MAX_DEPTH) -> list[Region]:
    """Scan Gutenberg block comments into regions ordered by position."""
    tokens = list(_GUTENBERG_TOKEN.finditer(content))
    return _build_regions(ContentFormat.GUTENBERG, tokens, strict=True, max_depth=max_depth)


def scan_shortcodes(content: str, max_depth: int = DEFAULT_MAX_DEPTH) -> list[Region]:
    """Scan WPBakery shortcodes into regions. Unclosed tags are treated as void."""
    tokens = list(_WPBAKERY_TOKEN.finditer(content))
    return _build_regions(ContentFormat.WPBAKERY, tokens, strict=False, max_depth=max_depth)


_SCANNERS: dict[ContentFormat, Callable[[str, int], list[Region]]] = {
    ContentFormat.GUTENBERG: scan_block_comments,
    ContentFormat.WPBAKERY: scan_shortcodes,
}


def _text_pieces(regions: list[Region]) -> list[Region]:
    """
    Body text of every non-void region, minus the regions nested in it.

    A region without nested regions yields its whole inner content. A
    container yields the gaps before, between and after its children. Void
    delimiters stay inside the piece that surrounds them.
    """
    containers = [r for r in regions if not r.void]
    children: list[list[Region]] = [[] for _ in containers]
    open_stack: list[int] = []
    for i, region in enumerate(containers):
        while open_stack and containers[open_stack[-1]].end <= region.start:
            open_stack.pop()
        if open_stack:
            children[open_stack[-1]].append(region)
        open_stack.append(i)

    pieces: list[Region] = []
    for region, nested in zip(containers, children):
        cursor = region.inner_start
        for child in [*nested, None]:
            stop = child.start if child is not None else region.inner_end
            if stop > cursor:
                pieces.append(Region(region.name, cursor, cursor, stop, stop))
            if child is not None:
                cursor = child.end

    pieces.sort(key=lambda r: r.inner_start)
    return pieces


def _top_level_spans(regions: list[Region]) -> list[tuple[int, int]]:
    spans: list[tuple[int, int]] = []
    current_end = -1
    for region in regions:
        if region.start >= current_end:
            spans.append((region.start, region.end))
            current_end = region.end
    return spans


def _overlaps(region: Region, claimed: list[tuple[int, int]]) -> bool:
    return any(region.start < end and start < region.end for start, end in claimed)


def layout_inline(content: str, max_depth: int = DEFAULT_MAX_DEPTH) -> InlineLayout:
    """
    Split the post body into inline format text pieces and unclaimed spans.

    Gutenberg claims first; shortcodes inside a claimed block are left to it.
    A scan failure is recorded in ``errors`` and that format claims nothing.
    """
    layout = InlineLayout()

    for fmt in INLINE_FORMATS:
        try:
            regions = _SCANNERS[fmt](content, max_depth)
        except ParseError as e:
            layout.errors[fmt] = e
            continue

        regions = [r for r in regions if not _overlaps(r, layout.claimed)]
        if not regions:
            continue

        layout.pieces[fmt] = _text_pieces(regions)
        layout.claimed.extend(_top_level_spans(regions))

    layout.claimed.sort()

    cursor = 0
    for start, end in layout.claimed:
        layout.spans.append((cursor, start))
        cursor = end
    if cursor < len(content) or not layout.spans:
        layout.spans.append((cursor, len(content)))

    return layout
