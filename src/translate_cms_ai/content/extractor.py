"""
Content extraction for translation.

Decomposes a post body plus builder meta into an ordered list of
translatable blocks and the metadata needed to restore them.
"""

from __future__ import annotations

import logging
from typing import Any

from translate_cms_ai.content.base import (
    CONTENT_SOURCE,
    BlockMetadata,
    BlockRef,
    ContentBlock,
    ContentFormat,
    ExtractedContent,
)
from translate_cms_ai.content.filters import (
    collapse_blank_lines,
    filter_service_content,
    is_translatable_markup,
)
from translate_cms_ai.content.formats import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_NODES,
    INLINE_FORMATS,
    META_KEYS,
    TREE_FORMATS,
    decode_payload,
    detect_formats,
    has_payload,
    layout_inline,
    walk_tree,
)
from translate_cms_ai.content.tables import promote_tabular_text
from translate_cms_ai.errors import ParseError

logger = logging.getLogger(__name__)


class ContentExtractor:
    """
    Extracts translatable blocks from WordPress content.

    Tree formats in post meta are extracted first, then inline block
    comments and shortcodes, then whatever body text no format claims.
    A malformed encoding contributes no blocks and extraction continues.
    """

    def __init__(
        self,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_nodes: int = DEFAULT_MAX_NODES,
        min_text_length: int = 3,
        detect_tables: bool = True,
        min_table_rows: int = 2,
    ):
        """
        Initialize extractor.

        Args:
            max_depth: Deepest tree level or delimiter nesting to walk.
            max_nodes: Maximum tree nodes visited per payload.
            min_text_length: Shorter fragments are dropped unless all-caps.
            detect_tables: Promote whitespace-aligned text to HTML tables.
            min_table_rows: Aligned lines needed before promoting a table.
        """
        self.max_depth = max_depth
        self.max_nodes = max_nodes
        self.min_text_length = min_text_length
        self.detect_tables = detect_tables
        self.min_table_rows = min_table_rows

    # ==================== Block text rules ====================

    def field_text(self, value: str) -> str:
        """Block text for a tree field, or empty if nothing is translatable."""
        if "<" in value:
            if not is_translatable_markup(value, self.min_text_length):
                return ""
            return collapse_blank_lines(value.strip())
        return collapse_blank_lines(filter_service_content(value, self.min_text_length))

    def region_text(self, inner: str) -> str:
        """Block text for the inner content of a block comment or shortcode."""
        if not is_translatable_markup(inner, self.min_text_length):
            return ""
        return collapse_blank_lines(inner.strip())

    def span_text(self, text: str, *, verbatim: bool = False) -> str:
        """
        Block text for body text outside any structured region.

        Args:
            text: Unclaimed span of the post body.
            verbatim: Keep blank lines and skip the service filter. Used when
                the whole document is a single plain block.
        """
        stripped = text.strip()
        if self.detect_tables:
            stripped = promote_tabular_text(stripped, self.min_table_rows)
        if verbatim:
            return stripped
        if not is_translatable_markup(stripped, self.min_text_length):
            return ""
        return collapse_blank_lines(stripped)

    # ==================== Extraction ====================

    def extract(self, raw_content: str | None, meta: dict[str, Any] | None = None) -> ExtractedContent:
        """
        Extract translatable blocks.

        Args:
            raw_content: Raw post body.
            meta: Post meta holding builder payloads.

        Returns:
            ExtractedContent with blocks in restoration order.
        """
        content = raw_content or ""
        meta = meta or {}

        detected = detect_formats(content, meta)
        primary = detected[0] if detected else ContentFormat.STANDARD

        blocks: list[ContentBlock] = []
        for fmt in TREE_FORMATS:
            blocks.extend(self._extract_tree(fmt, meta))

        layout = layout_inline(content, self.max_depth)
        for fmt, error in layout.errors.items():
            logger.warning("Skipping %s blocks: %s", fmt.label, error)

        if not blocks and not layout.structured:
            text = self.span_text(content, verbatim=True)
            if text:
                blocks.append(
                    ContentBlock(ContentFormat.STANDARD, text, [CONTENT_SOURCE, ContentFormat.STANDARD.value, 0])
                )
        else:
            for fmt in INLINE_FORMATS:
                for k, region in enumerate(layout.pieces.get(fmt, [])):
                    text = self.region_text(content[region.inner_start : region.inner_end])
                    if text:
                        blocks.append(ContentBlock(fmt, text, [CONTENT_SOURCE, fmt.value, k]))

            for k, (start, end) in enumerate(layout.spans):
                text = self.span_text(content[start:end])
                if text:
                    blocks.append(
                        ContentBlock(ContentFormat.STANDARD, text, [CONTENT_SOURCE, ContentFormat.STANDARD.value, k])
                    )

        raw_metadata = {
            META_KEYS[fmt]: meta[META_KEYS[fmt]]
            for fmt in TREE_FORMATS
            if has_payload(meta.get(META_KEYS[fmt]))
        }
        block_metadata = BlockMetadata(
            primary_format=primary,
            blocks=[
                BlockRef(index=i, field_path=list(block.field_path), original_text=block.text, format=block.format)
                for i, block in enumerate(blocks)
            ],
            raw_metadata=raw_metadata or None,
        )

        logger.debug(
            "Extracted %d blocks (primary=%s, detected=%s)",
            len(blocks),
            primary.value,
            [f.value for f in detected],
        )

        return ExtractedContent(
            primary_format=primary,
            blocks=blocks,
            block_metadata=block_metadata,
            has_multiple_formats=len(detected) > 1,
        )

    def _extract_tree(self, content_format: ContentFormat, meta: dict[str, Any]) -> list[ContentBlock]:
        try:
            payload = decode_payload(content_format, meta)
            if payload is None:
                return []
            fields = walk_tree(payload, max_depth=self.max_depth, max_nodes=self.max_nodes)
        except ParseError as e:
            logger.warning("Skipping %s payload: %s", content_format.label, e)
            return []

        blocks = []
        for tree_field in fields:
            text = self.field_text(tree_field.value)
            if text:
                blocks.append(ContentBlock(content_format, text, [payload.meta_key, *tree_field.path]))
        return blocks


def extract_content(raw_content: str | None, meta: dict[str, Any] | None = None, **options: Any) -> ExtractedContent:
    """Extract blocks with a one-off extractor. Options go to ``ContentExtractor``."""
    return ContentExtractor(**options).extract(raw_content, meta)
