"""
DuckDB database operations for translate-cms-ai.

Handles translation jobs, the processing log, and the async job store
used by the translation queue.
"""

from __future__ import annotations

import json
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import duckdb

from translate_cms_ai.content.base import BlockMetadata


class JobStatus(str, Enum):
    """Translation job status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PUBLISHED = "published"

    @property
    def is_terminal(self) -> bool:
        """True for states the queue never revisits."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.PUBLISHED)


class Stage(str, Enum):
    """Job stages recorded in the processing log."""

    QUEUE = "queue"
    FETCH = "fetch"
    EXTRACT = "extract"
    TRANSLATE_TITLE = "translate_title"
    TRANSLATE_CONTENT = "translate_content"
    SAVE = "save"
    PUBLISH = "publish"


@dataclass
class TranslationJob:
    """Translation job record."""

    id: str | None = None
    entity_id: int = 0
    entity_title: str = ""
    source_language: str = "en"
    target_language: str = ""
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    translated_title: str | None = None
    translated_content: str | None = None
    block_metadata: BlockMetadata | None = None
    content_type: str | None = None
    tokens_used: int = 0
    retry_count: int = 0
    error_message: str | None = None
    published_entity_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Database:
    """DuckDB database wrapper for translate-cms-ai."""

    # SQL for creating tables
    _SCHEMA = """
    -- Create sequence for job ordering if not exists
    CREATE SEQUENCE IF NOT EXISTS translation_jobs_seq START 1;

    -- Translation jobs, one per (entity, target language)
    CREATE TABLE IF NOT EXISTS translation_jobs (
        id VARCHAR PRIMARY KEY,
        seq BIGINT NOT NULL,
        entity_id BIGINT NOT NULL,
        entity_title VARCHAR,
        source_language VARCHAR NOT NULL,
        target_language VARCHAR NOT NULL,
        status VARCHAR NOT NULL DEFAULT 'pending',
        progress INTEGER DEFAULT 0,
        translated_title TEXT,
        translated_content TEXT,
        block_metadata JSON,
        content_type VARCHAR,
        tokens_used INTEGER DEFAULT 0,
        retry_count INTEGER DEFAULT 0,
        error_message TEXT,
        published_entity_id BIGINT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    -- Create sequence for processing_log if not exists
    CREATE SEQUENCE IF NOT EXISTS processing_log_id_seq START 1;

    -- Processing log for audit trail
    CREATE TABLE IF NOT EXISTS processing_log (
        id INTEGER PRIMARY KEY,
        run_id VARCHAR NOT NULL,
        job_id VARCHAR,
        stage VARCHAR NOT NULL,
        level VARCHAR NOT NULL,
        message TEXT NOT NULL,
        context JSON,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    -- Create indexes for efficient queries
    CREATE INDEX IF NOT EXISTS idx_log_lookup ON processing_log(job_id, stage, level);
    """

    # Columns update_job may write
    _UPDATABLE = frozenset(
        {
            "entity_title",
            "status",
            "progress",
            "translated_title",
            "translated_content",
            "block_metadata",
            "content_type",
            "tokens_used",
            "retry_count",
            "error_message",
            "published_entity_id",
        }
    )

    _JOB_COLUMNS = """
        id, entity_id, entity_title, source_language, target_language, status,
        progress, translated_title, translated_content, block_metadata,
        content_type, tokens_used, retry_count, error_message,
        published_entity_id, created_at, updated_at
    """

    def __init__(self, db_path: Path | str):
        """Initialize database connection. Use ":memory:" for a transient store."""
        self._in_memory = str(db_path) == ":memory:"
        self.db_path = Path(db_path)
        if not self._in_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: duckdb.DuckDBPyConnection | None = None
        self._run_id = str(uuid.uuid4())

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = duckdb.connect(":memory:" if self._in_memory else str(self.db_path))
            self._init_schema()
        return self._conn

    @property
    def run_id(self) -> str:
        """Get current run ID."""
        return self._run_id

    def _init_schema(self) -> None:
        """Initialize database schema."""
        self.conn.execute(self._SCHEMA)

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ==================== Jobs ====================

    def create_job(self, job: TranslationJob) -> str:
        """Insert a job and return its ID."""
        job_id = job.id or str(uuid.uuid4())
        self.conn.execute(
            """
            INSERT INTO translation_jobs
            (id, seq, entity_id, entity_title, source_language, target_language,
             status, progress, block_metadata, content_type)
            VALUES (?, nextval('translation_jobs_seq'), ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                job_id,
                job.entity_id,
                job.entity_title,
                job.source_language,
                job.target_language,
                job.status.value,
                job.progress,
                json.dumps(job.block_metadata.to_dict()) if job.block_metadata else None,
                job.content_type,
            ],
        )
        return job_id

    def get_job(self, job_id: str) -> TranslationJob | None:
        """Get a job by ID."""
        row = self.conn.execute(
            f"SELECT {self._JOB_COLUMNS} FROM translation_jobs WHERE id = ?", [job_id]
        ).fetchone()
        if row:
            return self._row_to_job(row)
        return None

    def get_jobs(
        self,
        status: JobStatus | None = None,
        *,
        statuses: Iterable[JobStatus] | None = None,
        entity_id: int | None = None,
        limit: int | None = None,
    ) -> list[TranslationJob]:
        """Get jobs in creation order, optionally filtered."""
        conditions = []
        params: list[Any] = []

        wanted = list(statuses or [])
        if status is not None:
            wanted.append(status)
        if wanted:
            conditions.append(f"status IN ({', '.join('?' for _ in wanted)})")
            params.extend(s.value for s in wanted)
        if entity_id is not None:
            conditions.append("entity_id = ?")
            params.append(entity_id)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        limit_clause = "LIMIT ?" if limit else ""
        if limit:
            params.append(limit)

        rows = self.conn.execute(
            f"""
            SELECT {self._JOB_COLUMNS}
            FROM translation_jobs
            {where_clause}
            ORDER BY seq
            {limit_clause}
            """,
            params,
        ).fetchall()
        return [self._row_to_job(row) for row in rows]

    def update_job(self, job_id: str, **fields: Any) -> None:
        """
        Partially update a job.

        Args:
            job_id: Job to update.
            **fields: Column values. Enums and BlockMetadata are serialized.

        Raises:
            ValueError: If a field is not an updatable column.
        """
        if not fields:
            return

        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Invalid job fields: {sorted(unknown)}")

        assignments = []
        params: list[Any] = []
        for column, value in fields.items():
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, BlockMetadata):
                value = json.dumps(value.to_dict())
            assignments.append(f"{column} = ?")
            params.append(value)

        self.conn.execute(
            f"UPDATE translation_jobs SET {', '.join(assignments)}, "
            "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            [*params, job_id],
        )

    def delete_job(self, job_id: str) -> None:
        """Delete a job record."""
        self.conn.execute("DELETE FROM translation_jobs WHERE id = ?", [job_id])

    def _row_to_job(self, row: tuple) -> TranslationJob:
        """Convert database row to TranslationJob."""
        metadata = row[9]
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        return TranslationJob(
            id=row[0],
            entity_id=row[1],
            entity_title=row[2] or "",
            source_language=row[3],
            target_language=row[4],
            status=JobStatus(row[5]),
            progress=row[6] or 0,
            translated_title=row[7],
            translated_content=row[8],
            block_metadata=BlockMetadata.from_dict(metadata) if metadata else None,
            content_type=row[10],
            tokens_used=row[11] or 0,
            retry_count=row[12] or 0,
            error_message=row[13],
            published_entity_id=row[14],
            created_at=row[15],
            updated_at=row[16],
        )

    # ==================== Logging ====================

    def log(
        self,
        level: str,
        stage: str,
        message: str,
        job_id: str | None = None,
        context: dict | None = None,
    ) -> None:
        """Insert a log entry."""
        context_json = json.dumps(context, default=str) if context else None
        self.conn.execute(
            """
            INSERT INTO processing_log
            (id, run_id, job_id, stage, level, message, context)
            VALUES (nextval('processing_log_id_seq'), ?, ?, ?, ?, ?, ?)
            """,
            [self._run_id, job_id, stage, level, message, context_json],
        )

    def get_logs(
        self,
        job_id: str | None = None,
        level: str | None = None,
        stage: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Get log entries, newest first."""
        conditions = []
        params: list[Any] = []

        if job_id:
            conditions.append("job_id = ?")
            params.append(job_id)
        if level:
            conditions.append("level = ?")
            params.append(level.upper())
        if stage:
            conditions.append("stage = ?")
            params.append(stage)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        rows = self.conn.execute(
            f"""
            SELECT run_id, job_id, stage, level, message, context, created_at
            FROM processing_log
            {where_clause}
            ORDER BY id DESC
            LIMIT ?
            """,
            [*params, limit],
        ).fetchall()

        return [
            {
                "run_id": row[0],
                "job_id": row[1],
                "stage": row[2],
                "level": row[3],
                "message": row[4],
                "context": json.loads(row[5]) if row[5] else None,
                "created_at": row[6],
            }
            for row in rows
        ]

    # ==================== Statistics ====================

    def get_statistics(self) -> dict:
        """Get statistics for the CLI (formatted for display)."""
        status_counts = self.conn.execute(
            "SELECT status, COUNT(*) FROM translation_jobs GROUP BY status"
        ).fetchall()
        status_map = {row[0]: row[1] for row in status_counts}

        tokens = (
            self.conn.execute("SELECT SUM(tokens_used) FROM translation_jobs").fetchone()[0] or 0
        )
        errors = (
            self.conn.execute(
                "SELECT COUNT(*) FROM processing_log WHERE level = 'ERROR'"
            ).fetchone()[0]
            or 0
        )

        return {
            "total_jobs": sum(status_map.values()),
            **{f"{status.value}_jobs": status_map.get(status.value, 0) for status in JobStatus},
            "tokens_used": int(tokens),
            "errors": errors,
        }


class JobStore(ABC):
    """Durable, partial-update capable store the queue persists jobs to."""

    @abstractmethod
    async def create(self, job: TranslationJob) -> str:
        """Persist a new job and return its ID."""
        ...

    @abstractmethod
    async def get(self, job_id: str) -> TranslationJob | None:
        """Load a job, or None if it no longer exists."""
        ...

    @abstractmethod
    async def update(self, job_id: str, **fields: Any) -> None:
        """Update some fields of a job."""
        ...

    @abstractmethod
    async def list_jobs(self, statuses: Iterable[JobStatus] | None = None) -> list[TranslationJob]:
        """List jobs in creation order."""
        ...

    async def list_unfinished(self) -> list[TranslationJob]:
        """Jobs a restarted process must resubmit."""
        return await self.list_jobs([JobStatus.PENDING, JobStatus.PROCESSING])

    async def log(
        self,
        level: str,
        stage: str,
        message: str,
        job_id: str | None = None,
        context: dict | None = None,
    ) -> None:
        """Record an audit entry. The default store keeps none."""
        return None


class DuckDBJobStore(JobStore):
    """JobStore backed by the DuckDB ``Database``."""

    def __init__(self, db: Database):
        self.db = db

    async def create(self, job: TranslationJob) -> str:
        return self.db.create_job(job)

    async def get(self, job_id: str) -> TranslationJob | None:
        return self.db.get_job(job_id)

    async def update(self, job_id: str, **fields: Any) -> None:
        self.db.update_job(job_id, **fields)

    async def list_jobs(self, statuses: Iterable[JobStatus] | None = None) -> list[TranslationJob]:
        return self.db.get_jobs(statuses=statuses)

    async def log(
        self,
        level: str,
        stage: str,
        message: str,
        job_id: str | None = None,
        context: dict | None = None,
    ) -> None:
        self.db.log(level, stage, message, job_id=job_id, context=context)
