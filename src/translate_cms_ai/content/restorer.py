"""
Content restoration after translation.

Splices translated segments back into a deep copy of the original
document structure, using the block metadata recorded at extraction.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from translate_cms_ai.content.base import (
    BlockMetadata,
    BlockRef,
    ContentFormat,
    RestoredContent,
)
from translate_cms_ai.content.extractor import ContentExtractor
from translate_cms_ai.content.filters import split_segments, split_service_margins
from translate_cms_ai.content.formats import (
    META_KEYS,
    InlineLayout,
    decode_payload,
    encode_payload,
    get_tree_value,
    layout_inline,
    set_tree_value,
)
from translate_cms_ai.errors import ParseError, SegmentMismatchError

logger = logging.getLogger(__name__)


def _with_outer_whitespace(original: str, replacement: str) -> str:
    """Wrap ``replacement`` in the leading and trailing whitespace of ``original``."""
    stripped = original.strip()
    if not stripped:
        return original + replacement
    lead = original[: len(original) - len(original.lstrip())]
    trail = original[len(original.rstrip()) :]
    return f"{lead}{replacement}{trail}"


def _splice_field(value: str, segment: str) -> str:
    """Put ``segment`` where the extracted text sat inside a tree field."""
    if "<" in value:
        return _with_outer_whitespace(value, segment)
    lead, _, trail = split_service_margins(value)
    return f"{lead}{segment}{trail}"


class ContentRestorer:
    """
    Rebuilds structured content from translated text.

    Each translated segment replaces exactly the field or region its block
    came from. Anything that cannot be mapped cleanly falls back to the
    flattened translation instead of a partially substituted document.
    """

    def __init__(self, extractor: ContentExtractor | None = None):
        """
        Initialize restorer.

        Args:
            extractor: Extractor whose block text rules produced the metadata.
                Must use the same settings as the one used at extraction.
        """
        self.extractor = extractor or ContentExtractor()

    def restore(
        self,
        original_content: str | None,
        original_meta: dict[str, Any] | None,
        translated_text: str,
        metadata: BlockMetadata,
    ) -> RestoredContent:
        """
        Restore translated text into the original structure.

        Args:
            original_content: Post body the blocks were extracted from.
            original_meta: Post meta the blocks were extracted from. Falls back
                to the payload recorded in ``metadata`` when None.
            translated_text: Combined translation, blocks separated by blank lines.
            metadata: Block metadata recorded at extraction.

        Returns:
            RestoredContent. ``fallback`` is set when the translation could not
            be mapped onto the structure.
        """
        content = original_content or ""
        source_meta = original_meta if original_meta is not None else (metadata.raw_metadata or {})
        meta = copy.deepcopy(source_meta)

        layout = layout_inline(content, self.extractor.max_depth)
        tree_refs = [ref for ref in metadata.blocks if ref.format.is_tree]

        if not tree_refs and not layout.structured:
            return RestoredContent(content=_with_outer_whitespace(content, translated_text.strip()), meta=meta)

        segments = split_segments(translated_text)
        try:
            if len(segments) != len(metadata.blocks):
                raise SegmentMismatchError(
                    f"Expected {len(metadata.blocks)} segments, got {len(segments)}",
                    expected=len(metadata.blocks),
                    actual=len(segments),
                )
            restored_meta = self._restore_trees(meta, metadata.blocks, segments)
            restored_content = self._restore_inline(content, layout, metadata.blocks, segments)
        except (SegmentMismatchError, ParseError) as e:
            logger.warning(
                "Falling back to flattened text for %s content: %s",
                metadata.primary_format.label,
                e,
            )
            return RestoredContent(
                content=translated_text.strip(),
                meta=copy.deepcopy(source_meta),
                fallback=True,
            )

        return RestoredContent(content=restored_content, meta=restored_meta)

    def _restore_trees(
        self,
        meta: dict[str, Any],
        refs: list[BlockRef],
        segments: list[str],
    ) -> dict[str, Any]:
        for fmt in (ContentFormat.BEBUILDER, ContentFormat.ELEMENTOR):
            pending = [(ref, segments[ref.index]) for ref in refs if ref.format == fmt]
            if not pending:
                continue

            payload = decode_payload(fmt, meta)
            if payload is None:
                raise SegmentMismatchError(f"{fmt.label} payload missing from meta")

            for ref, segment in pending:
                if not ref.field_path or ref.field_path[0] != META_KEYS[fmt]:
                    raise SegmentMismatchError(f"Unexpected field path {ref.field_path}")
                path = ref.field_path[1:]
                current = get_tree_value(payload.tree, path)
                if not isinstance(current, str) or self.extractor.field_text(current) != ref.original_text:
                    raise SegmentMismatchError(f"{fmt.label} field changed since extraction: {path}")
                set_tree_value(payload.tree, path, _splice_field(current, segment))

            meta[payload.meta_key] = encode_payload(payload)

        return meta

    def _restore_inline(
        self,
        content: str,
        layout: InlineLayout,
        refs: list[BlockRef],
        segments: list[str],
    ) -> str:
        replacements: list[tuple[int, int, str]] = []

        for ref in refs:
            if ref.format.is_tree:
                continue
            try:
                k = int(ref.field_path[2])
            except (IndexError, TypeError, ValueError) as e:
                raise SegmentMismatchError(f"Unexpected field path {ref.field_path}") from e

            if ref.format == ContentFormat.STANDARD:
                if k >= len(layout.spans):
                    raise SegmentMismatchError(f"Text span {k} no longer exists")
                start, end = layout.spans[k]
                current = self.extractor.span_text(content[start:end])
            else:
                pieces = layout.pieces.get(ref.format, [])
                if k >= len(pieces):
                    raise SegmentMismatchError(f"{ref.format.label} block {k} no longer exists")
                start, end = pieces[k].inner_start, pieces[k].inner_end
                current = self.extractor.region_text(content[start:end])

            if current != ref.original_text:
                raise SegmentMismatchError(f"{ref.format.label} block {k} changed since extraction")

            replacements.append((start, end, _with_outer_whitespace(content[start:end], segments[ref.index])))

        result = content
        for start, end, text in sorted(replacements, key=lambda r: r[0], reverse=True):
            result = result[:start] + text + result[end:]
        return result


def restore_content(
    original_content: str | None,
    original_meta: dict[str, Any] | None,
    translated_text: str,
    metadata: BlockMetadata,
    **options: Any,
) -> RestoredContent:
    """Restore with a one-off restorer. Options go to ``ContentExtractor``."""
    return ContentRestorer(ContentExtractor(**options)).restore(
        original_content, original_meta, translated_text, metadata
    )
