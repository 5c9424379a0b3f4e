"""
Data model for extracted content blocks.

Defines the format tags, blocks and the metadata needed to splice
translated text back into its structural position.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Delimiter between combined blocks; restoration splits on blank lines.
BLOCK_SEPARATOR = "\n\n"

# First field path element for blocks found in the post body.
CONTENT_SOURCE = "post_content"

FieldPath = list[str | int]


class ContentFormat(str, Enum):
    """Structural encodings a document can carry."""

    BEBUILDER = "bebuilder"
    ELEMENTOR = "elementor"
    GUTENBERG = "gutenberg"
    WPBAKERY = "wpbakery"
    STANDARD = "standard"

    @property
    def label(self) -> str:
        """Human readable name."""
        return _LABELS[self]

    @property
    def is_tree(self) -> bool:
        """True for formats stored as a decoded tree in post meta."""
        return self in (ContentFormat.BEBUILDER, ContentFormat.ELEMENTOR)


_LABELS = {
    ContentFormat.BEBUILDER: "BeBuilder",
    ContentFormat.ELEMENTOR: "Elementor",
    ContentFormat.GUTENBERG: "Gutenberg",
    ContentFormat.WPBAKERY: "WP Bakery",
    ContentFormat.STANDARD: "Standard Content",
}


def get_type_label(content_format: ContentFormat | str) -> str:
    """Return the display label for a format tag."""
    try:
        return ContentFormat(content_format).label
    except ValueError:
        return "Unknown"


@dataclass
class ContentBlock:
    """One translatable text fragment."""

    format: ContentFormat
    text: str
    field_path: FieldPath = field(default_factory=list)


@dataclass
class BlockRef:
    """Position of a block inside its source document."""

    index: int
    field_path: FieldPath
    original_text: str
    format: ContentFormat = ContentFormat.STANDARD

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "field_path": list(self.field_path),
            "original_text": self.original_text,
            "format": self.format.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BlockRef:
        return cls(
            index=int(data["index"]),
            field_path=list(data.get("field_path") or []),
            original_text=data.get("original_text", ""),
            format=ContentFormat(data.get("format", ContentFormat.STANDARD.value)),
        )


@dataclass
class BlockMetadata:
    """
    Index and field-path map produced at extraction.

    Persisted with the job and consumed once at restoration. The number of
    refs always equals the number of extracted blocks.
    """

    primary_format: ContentFormat
    blocks: list[BlockRef] = field(default_factory=list)
    raw_metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary_format": self.primary_format.value,
            "blocks": [b.to_dict() for b in self.blocks],
            "raw_metadata": self.raw_metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BlockMetadata:
        return cls(
            primary_format=ContentFormat(data.get("primary_format", "standard")),
            blocks=[BlockRef.from_dict(b) for b in data.get("blocks", [])],
            raw_metadata=data.get("raw_metadata"),
        )


@dataclass
class ExtractedContent:
    """Result of decomposing a document into blocks."""

    primary_format: ContentFormat
    blocks: list[ContentBlock]
    block_metadata: BlockMetadata
    has_multiple_formats: bool = False

    @property
    def combined_text(self) -> str:
        """All block texts joined with the block separator."""
        return combine_blocks(self.blocks)

    @property
    def formats(self) -> list[ContentFormat]:
        """Formats present, in extraction order."""
        seen: list[ContentFormat] = []
        for block in self.blocks:
            if block.format not in seen:
                seen.append(block.format)
        return seen


@dataclass
class RestoredContent:
    """Document rebuilt from translated text."""

    content: str
    meta: dict[str, Any] = field(default_factory=dict)
    fallback: bool = False


def combine_blocks(blocks: list[ContentBlock]) -> str:
    """Join block texts for a single provider call."""
    return BLOCK_SEPARATOR.join(block.text for block in blocks)
