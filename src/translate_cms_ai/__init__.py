"""
translate-cms-ai: AI-powered translation for WordPress page builders.

This package provides tools for:
- Extracting translatable text from BeBuilder, Elementor, Gutenberg and
  WPBakery content, and restoring translations into the same structure
- Running translation jobs through a bounded queue with quota-aware retry
- Publishing translations back to WordPress as linked Polylang posts
"""

__version__ = "0.1.0"

from translate_cms_ai.cms import Entity, EntityStore, WordPressEntityStore
from translate_cms_ai.config import Settings, load_config
from translate_cms_ai.content import (
    BlockMetadata,
    ContentBlock,
    ContentFormat,
    ContentExtractor,
    ContentRestorer,
    extract_content,
    restore_content,
)
from translate_cms_ai.database import Database, JobStatus, Stage, TranslationJob
from translate_cms_ai.translation import (
    ContentTranslator,
    TranslationQueue,
    TranslationService,
    create_translation_service,
)

__all__ = [
    # Config
    "Settings",
    "load_config",
    # Content
    "BlockMetadata",
    "ContentBlock",
    "ContentFormat",
    "ContentExtractor",
    "ContentRestorer",
    "extract_content",
    "restore_content",
    # Database
    "Database",
    "TranslationJob",
    "JobStatus",
    "Stage",
    # CMS
    "Entity",
    "EntityStore",
    "WordPressEntityStore",
    # Translation
    "ContentTranslator",
    "TranslationQueue",
    "TranslationService",
    "create_translation_service",
]
