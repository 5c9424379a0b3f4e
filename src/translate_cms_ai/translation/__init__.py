"""
Translation pipeline for translate-cms-ai.

Provides:
- The provider-neutral translator interface and its LLM implementation
- A bounded-concurrency job queue with quota-aware retry
- The service callers enqueue, preview and publish through
"""

from translate_cms_ai.translation.queue import QueueItem, TranslationQueue
from translate_cms_ai.translation.service import TranslationService, create_translation_service
from translate_cms_ai.translation.translator import (
    ContentTranslator,
    TranslationProvider,
    TranslationResult,
)

__all__ = [
    "ContentTranslator",
    "TranslationProvider",
    "TranslationResult",
    "QueueItem",
    "TranslationQueue",
    "TranslationService",
    "create_translation_service",
]
