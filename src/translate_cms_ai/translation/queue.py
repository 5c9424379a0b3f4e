"""
Bounded-concurrency translation job queue.

Admits jobs from a FIFO into at most ``concurrency`` asyncio tasks. Quota
failures are retried from the head of the FIFO after an exponential delay;
every other failure is final. Job state is persisted through a ``JobStore``
at fixed checkpoints so an interrupted run can be recovered.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

from translate_cms_ai.cms.base import EntityStore
from translate_cms_ai.content.extractor import ContentExtractor
from translate_cms_ai.database import JobStatus, JobStore, Stage
from translate_cms_ai.errors import ProviderQuotaError
from translate_cms_ai.translation.translator import TranslationProvider

logger = logging.getLogger(__name__)

# (job_id, progress, message)
ProgressCallback = Callable[[str, int, str], None]


@dataclass
class QueueItem:
    """In-memory queue entry. The job record in the store is authoritative."""

    job_id: str
    entity_id: int
    target_language: str
    attempt: int = 0


class JobAbandoned(Exception):
    """The job record disappeared or left PROCESSING while it was running."""


class TranslationQueue:
    """
    Schedules translation jobs on the running event loop.

    The FIFO, in-flight map and delayed-retry map are only touched from
    coroutines and callbacks on one loop, so no lock is used.
    """

    def __init__(
        self,
        job_store: JobStore,
        entity_store: EntityStore,
        translator: TranslationProvider,
        *,
        concurrency: int = 2,
        max_retries: int = 3,
        retry_base_delay: float = 5.0,
        extractor: ContentExtractor | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        progress_callback: ProgressCallback | None = None,
    ):
        """
        Initialize queue.

        Args:
            job_store: Durable job records.
            entity_store: CMS the entities are fetched from.
            translator: Provider used for title and body.
            concurrency: Maximum jobs running at once.
            max_retries: Quota retries before a job fails.
            retry_base_delay: Seconds before the first quota retry.
            extractor: Content extractor (default settings if omitted).
            sleep: Awaitable used for backoff delays.
            progress_callback: Called at every checkpoint.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.job_store = job_store
        self.entity_store = entity_store
        self.translator = translator
        self.concurrency = concurrency
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.extractor = extractor or ContentExtractor()
        self._sleep = sleep
        self._progress_callback = progress_callback

        self._fifo: deque[QueueItem] = deque()
        self._in_flight: dict[str, asyncio.Task] = {}
        self._delayed: dict[str, asyncio.Task] = {}
        self._idle = asyncio.Event()
        self._idle.set()

    # ==================== Scheduling ====================

    def add_job(self, job_id: str, entity_id: int, target_language: str, attempt: int = 0) -> None:
        """
        Enqueue a job and return immediately.

        Must be called while the event loop is running.
        """
        if self._is_known(job_id):
            logger.debug("Job %s already queued", job_id)
            return
        self._fifo.append(QueueItem(job_id, entity_id, target_language, attempt))
        self._admit()

    def _is_known(self, job_id: str) -> bool:
        return (
            job_id in self._in_flight
            or job_id in self._delayed
            or any(item.job_id == job_id for item in self._fifo)
        )

    def _admit(self) -> None:
        """Start jobs from the FIFO head until the concurrency cap is reached."""
        while self._fifo and len(self._in_flight) < self.concurrency:
            item = self._fifo.popleft()
            task = asyncio.get_running_loop().create_task(
                self._run(item), name=f"translate-{item.job_id}"
            )
            self._in_flight[item.job_id] = task
            task.add_done_callback(partial(self._on_done, item.job_id))
        self._update_idle()

    def _on_done(self, job_id: str, task: asyncio.Task) -> None:
        # A retry may already have re-admitted the same job under a new task
        if self._in_flight.get(job_id) is task:
            del self._in_flight[job_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Job %s task crashed: %s", job_id, task.exception())
        self._admit()

    def _update_idle(self) -> None:
        if self.is_idle:
            self._idle.set()
        else:
            self._idle.clear()

    @property
    def is_idle(self) -> bool:
        """True when nothing is queued, running or waiting to retry."""
        return not (self._fifo or self._in_flight or self._delayed)

    def status(self) -> dict[str, int]:
        """Counts of queued, running and delayed jobs."""
        return {
            "queued": len(self._fifo),
            "in_flight": len(self._in_flight),
            "delayed": len(self._delayed),
        }

    async def join(self) -> None:
        """Wait until every queued job has reached a terminal state."""
        await self._idle.wait()

    async def recover(self) -> int:
        """
        Re-submit persisted PENDING and PROCESSING jobs.

        Returns:
            Number of jobs re-submitted.
        """
        jobs = await self.job_store.list_unfinished()
        count = 0
        for job in jobs:
            if job.id is None or self._is_known(job.id):
                continue
            self.add_job(job.id, job.entity_id, job.target_language, attempt=job.retry_count)
            count += 1
        if count:
            logger.info("Recovered %d unfinished jobs", count)
        return count

    async def shutdown(self) -> None:
        """Cancel running and delayed tasks. Records stay PENDING/PROCESSING."""
        self._fifo.clear()
        tasks = [*self._in_flight.values(), *self._delayed.values()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._delayed.clear()
        self._update_idle()

    # ==================== Job execution ====================

    async def _run(self, item: QueueItem) -> None:
        """Run one job, capturing every failure into the job record."""
        try:
            await self._process(item)
        except JobAbandoned:
            logger.info("Job %s is no longer wanted, stopping", item.job_id)
        except ProviderQuotaError as e:
            await self._handle_quota(item, e)
        except Exception as e:
            logger.exception("Job %s failed", item.job_id)
            await self._fail(item, str(e) or type(e).__name__)

    async def _process(self, item: QueueItem) -> None:
        job = await self.job_store.get(item.job_id)
        if job is None:
            logger.warning("Job %s no longer exists, skipping", item.job_id)
            return
        if job.status.is_terminal:
            logger.info("Job %s is %s, skipping", item.job_id, job.status.value)
            return

        await self.job_store.update(
            item.job_id, status=JobStatus.PROCESSING, progress=10, error_message=None
        )
        await self._audit(item, 10, Stage.QUEUE, "Job started")

        await self._checkpoint(item, 20, Stage.FETCH, f"Fetching entity {item.entity_id}")
        entity = await self.entity_store.fetch(item.entity_id)
        extracted = self.extractor.extract(entity.raw_content, entity.meta)

        await self._checkpoint(
            item,
            40,
            Stage.EXTRACT,
            f"Extracted {len(extracted.blocks)} blocks ({extracted.primary_format.label})",
            entity_title=entity.title,
            block_metadata=extracted.block_metadata,
            content_type=extracted.primary_format.value,
        )

        title = await self.translator.translate_title(
            entity.title, job.source_language, item.target_language
        )
        await self._checkpoint(
            item, 60, Stage.TRANSLATE_TITLE, "Title translated",
            translated_title=title.translated_text,
        )

        body = await self.translator.translate_text(
            extracted.combined_text, job.source_language, item.target_language
        )
        tokens_used = title.tokens_used + body.tokens_used
        await self._checkpoint(
            item,
            80,
            Stage.TRANSLATE_CONTENT,
            f"Content translated ({tokens_used} tokens)",
            translated_content=body.translated_text,
            tokens_used=tokens_used,
        )

        await self._checkpoint(
            item, 100, Stage.SAVE, "Translation completed", status=JobStatus.COMPLETED
        )

    async def _checkpoint(
        self,
        item: QueueItem,
        progress: int,
        stage: Stage,
        message: str,
        **fields: Any,
    ) -> None:
        """Persist progress if the job is still wanted."""
        job = await self.job_store.get(item.job_id)
        if job is None or job.status != JobStatus.PROCESSING:
            raise JobAbandoned(item.job_id)
        await self.job_store.update(item.job_id, progress=progress, **fields)
        await self._audit(item, progress, stage, message)

    async def _audit(self, item: QueueItem, progress: int, stage: Stage, message: str) -> None:
        await self.job_store.log(
            "INFO", stage.value, message, job_id=item.job_id, context={"progress": progress}
        )
        logger.debug("Job %s [%d%%] %s", item.job_id, progress, message)
        if self._progress_callback:
            self._progress_callback(item.job_id, progress, message)

    async def _handle_quota(self, item: QueueItem, error: ProviderQuotaError) -> None:
        if item.attempt >= self.max_retries:
            await self._fail(item, f"Quota exceeded after {item.attempt} retries: {error}")
            return

        delay = self.retry_base_delay * 2**item.attempt
        retry = QueueItem(item.job_id, item.entity_id, item.target_language, item.attempt + 1)

        await self.job_store.update(
            item.job_id,
            status=JobStatus.PENDING,
            progress=0,
            retry_count=retry.attempt,
            error_message=str(error),
        )
        await self.job_store.log(
            "WARNING",
            Stage.QUEUE.value,
            f"Quota exceeded, retry {retry.attempt}/{self.max_retries} in {delay:.1f}s",
            job_id=item.job_id,
            context={"delay": delay, "attempt": retry.attempt},
        )
        logger.warning("Job %s hit provider quota, retrying in %.1fs", item.job_id, delay)

        self._delayed[item.job_id] = asyncio.get_running_loop().create_task(
            self._requeue_after(retry, delay), name=f"retry-{item.job_id}"
        )

    async def _requeue_after(self, item: QueueItem, delay: float) -> None:
        try:
            await self._sleep(delay)
        finally:
            self._delayed.pop(item.job_id, None)
        self._fifo.appendleft(item)
        self._admit()

    async def _fail(self, item: QueueItem, message: str) -> None:
        job = await self.job_store.get(item.job_id)
        if job is None or job.status.is_terminal:
            logger.warning("Job %s failed after leaving the queue: %s", item.job_id, message)
            return
        await self.job_store.update(item.job_id, status=JobStatus.FAILED, error_message=message)
        await self.job_store.log("ERROR", Stage.QUEUE.value, message, job_id=item.job_id)
        if self._progress_callback:
            self._progress_callback(item.job_id, -1, message)
