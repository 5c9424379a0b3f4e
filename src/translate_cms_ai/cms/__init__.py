"""
CMS entity stores.

Provides:
- The EntityStore interface the queue and publisher use
- A WordPress REST implementation with Polylang linking
"""

from translate_cms_ai.cms.base import Entity, EntityStore
from translate_cms_ai.cms.wordpress import WordPressEntityStore

__all__ = ["Entity", "EntityStore", "WordPressEntityStore"]
