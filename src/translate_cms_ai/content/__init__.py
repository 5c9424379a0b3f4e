"""
Content block extraction and restoration.

Supports:
- BeBuilder (PHP-serialized meta) and Elementor (JSON meta) trees
- Gutenberg block comments and WPBakery shortcodes
- Plain and rich text, with tabular text promoted to HTML tables
"""

from translate_cms_ai.content.base import (
    BlockMetadata,
    BlockRef,
    ContentBlock,
    ContentFormat,
    ExtractedContent,
    RestoredContent,
    combine_blocks,
    get_type_label,
)
from translate_cms_ai.content.extractor import ContentExtractor, extract_content
from translate_cms_ai.content.restorer import ContentRestorer, restore_content
from translate_cms_ai.content.tables import check_table_balance

__all__ = [
    "BlockMetadata",
    "BlockRef",
    "ContentBlock",
    "ContentFormat",
    "ExtractedContent",
    "RestoredContent",
    "combine_blocks",
    "get_type_label",
    "ContentExtractor",
    "extract_content",
    "ContentRestorer",
    "restore_content",
    "check_table_balance",
]
