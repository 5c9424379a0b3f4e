"""
Translation service: the entry point callers use.

Owns one ``TranslationQueue`` and the collaborators it is built from.
``create_translation_service`` wires everything from settings.
"""

from __future__ import annotations

import logging

from translate_cms_ai.cms.base import EntityStore
from translate_cms_ai.cms.wordpress import WordPressEntityStore
from translate_cms_ai.config import Settings
from translate_cms_ai.content.base import BlockMetadata, ContentFormat, ExtractedContent
from translate_cms_ai.content.extractor import ContentExtractor
from translate_cms_ai.content.restorer import ContentRestorer
from translate_cms_ai.content.tables import check_table_balance
from translate_cms_ai.database import (
    Database,
    DuckDBJobStore,
    JobStatus,
    JobStore,
    Stage,
    TranslationJob,
)
from translate_cms_ai.errors import ConfigurationError, ContentValidationError
from translate_cms_ai.llm.factory import create_llm_provider
from translate_cms_ai.translation.queue import ProgressCallback, TranslationQueue
from translate_cms_ai.translation.translator import ContentTranslator, TranslationProvider

logger = logging.getLogger(__name__)


class TranslationService:
    """
    Enqueues, previews and publishes translations.

    Example:
        service = create_translation_service(settings, db)
        job_id = await service.enqueue_translation(42, "fr")
        await service.queue.join()
        published_id = await service.publish(job_id)
    """

    def __init__(
        self,
        job_store: JobStore,
        entity_store: EntityStore,
        queue: TranslationQueue,
        *,
        source_language: str = "en",
        target_languages: list[str] | None = None,
        extractor: ContentExtractor | None = None,
    ):
        self.job_store = job_store
        self.entity_store = entity_store
        self.queue = queue
        self.source_language = source_language
        self.target_languages = target_languages or []
        self.extractor = extractor or queue.extractor
        self.restorer = ContentRestorer(self.extractor)

    async def enqueue_translation(
        self,
        entity_id: int,
        target_language: str,
        source_language: str | None = None,
    ) -> str:
        """
        Create a job for (entity, language) and hand it to the queue.

        An unfinished job for the same pair is reused rather than duplicated.

        Returns:
            Job ID.

        Raises:
            ConfigurationError: If the language is empty or equals the source.
            EntityNotFoundError: If the entity does not exist.
        """
        target_language = (target_language or "").strip().lower()
        source_language = (source_language or self.source_language).strip().lower()
        if not target_language:
            raise ConfigurationError("Target language is required")
        if target_language == source_language:
            raise ConfigurationError(f"Target language equals source language ({source_language})")

        entity = await self.entity_store.fetch(entity_id)

        for job in await self.job_store.list_unfinished():
            if job.entity_id == entity.id and job.target_language == target_language and job.id:
                logger.info("Reusing job %s for entity %s (%s)", job.id, entity.id, target_language)
                self.queue.add_job(job.id, job.entity_id, job.target_language, attempt=job.retry_count)
                return job.id

        job_id = await self.job_store.create(
            TranslationJob(
                entity_id=entity.id,
                entity_title=entity.title,
                source_language=source_language,
                target_language=target_language,
            )
        )
        await self.job_store.log(
            "INFO",
            Stage.QUEUE.value,
            f"Queued entity {entity.id} for {target_language}",
            job_id=job_id,
        )
        self.queue.add_job(job_id, entity.id, target_language)
        return job_id

    async def enqueue_all(self, entity_id: int, target_languages: list[str] | None = None) -> list[str]:
        """Enqueue one job per target language (configured languages by default)."""
        languages = target_languages or self.target_languages
        if not languages:
            raise ConfigurationError("No target languages configured")
        return [await self.enqueue_translation(entity_id, lang) for lang in languages]

    async def preview(self, entity_id: int) -> ExtractedContent:
        """Fetch an entity and extract its blocks without translating."""
        entity = await self.entity_store.fetch(entity_id)
        return self.extractor.extract(entity.raw_content, entity.meta)

    async def publish(self, job_id: str) -> int:
        """
        Restore a completed job into its source structure and publish it.

        Returns:
            ID of the published translation.

        Raises:
            ConfigurationError: If the job is missing or not COMPLETED.
            TableBalanceError: If the translated table markup is unbalanced.
        """
        job = await self.job_store.get(job_id)
        if job is None:
            raise ConfigurationError(f"Job not found: {job_id}")
        if job.status != JobStatus.COMPLETED:
            raise ConfigurationError(
                f"Job {job_id} is {job.status.value}; only completed jobs can be published"
            )

        translated = job.translated_content or ""
        try:
            check_table_balance(translated)
        except ContentValidationError as e:
            await self.job_store.log("ERROR", Stage.PUBLISH.value, str(e), job_id=job_id)
            raise

        entity = await self.entity_store.fetch(job.entity_id)
        metadata = job.block_metadata or BlockMetadata(primary_format=ContentFormat.STANDARD)
        restored = self.restorer.restore(entity.raw_content, entity.meta, translated, metadata)
        if restored.fallback:
            await self.job_store.log(
                "WARNING",
                Stage.PUBLISH.value,
                "Translation did not map onto the source structure; publishing flattened text",
                job_id=job_id,
            )

        published_id = await self.entity_store.publish(
            entity,
            job.target_language,
            job.translated_title or entity.title,
            restored.content,
            restored.meta,
        )

        await self.job_store.update(
            job_id, status=JobStatus.PUBLISHED, published_entity_id=published_id
        )
        await self.job_store.log(
            "INFO",
            Stage.PUBLISH.value,
            f"Published as {published_id}",
            job_id=job_id,
            context={"fallback": restored.fallback},
        )
        logger.info("Job %s published as %s", job_id, published_id)
        return published_id

    async def close(self) -> None:
        """Stop the queue and release network clients."""
        await self.queue.shutdown()
        await self.entity_store.close()
        await self.queue.translator.close()


def create_translation_service(
    settings: Settings,
    db: Database,
    *,
    entity_store: EntityStore | None = None,
    translator: TranslationProvider | None = None,
    progress_callback: ProgressCallback | None = None,
) -> TranslationService:
    """
    Build a translation service from settings.

    Raises:
        ConfigurationError: If the provider or CMS settings are incomplete.
    """
    if translator is None:
        settings.validate_provider()
        provider = create_llm_provider(
            settings.translation.provider.value,
            api_key=settings.provider_api_key,
            model=settings.translation.default_model,
            timeout=settings.translation.timeout_seconds,
        )
        translator = ContentTranslator(
            provider,
            system_prompt=settings.translation.system_prompt,
            temperature=settings.translation.temperature,
            max_tokens=settings.translation.max_tokens,
        )

    if entity_store is None:
        settings.validate_cms()
        entity_store = WordPressEntityStore(
            settings.cms.base_url,
            settings.cms.username,
            settings.cms.application_password,
            timeout=settings.cms.timeout_seconds,
            publish_status=settings.cms.publish_status,
        )

    extraction = settings.extraction
    extractor = ContentExtractor(
        max_depth=extraction.max_depth,
        max_nodes=extraction.max_nodes,
        min_text_length=extraction.min_text_length,
        detect_tables=extraction.detect_tables,
        min_table_rows=extraction.min_table_rows,
    )

    job_store = DuckDBJobStore(db)
    queue = TranslationQueue(
        job_store,
        entity_store,
        translator,
        concurrency=settings.queue.concurrency,
        max_retries=settings.queue.max_retries,
        retry_base_delay=settings.queue.retry_base_delay,
        extractor=extractor,
        progress_callback=progress_callback,
    )
    return TranslationService(
        job_store,
        entity_store,
        queue,
        source_language=settings.translation.source_language,
        target_languages=settings.translation.target_languages,
        extractor=extractor,
    )
