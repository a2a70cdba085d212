"""Orchestrator for content ingestion jobs.

Pipeline per job: **validate -> persist (pending) -> extract -> chunk -> complete**.

The :class:`IngestionService` coordinates four collaborators without any of
them knowing about each other:

    1. Connector registry -- one :class:`IConnector` per source type
    2. TextChunker        -- overlapping sentence-aligned windows
    3. IRecordStore       -- job records (the only cross-request state)
    4. IScheduler         -- best-effort background execution

Job lifecycle::

    create_job ──> pending ──> processing ──> completed
                                    └───────> failed

``text`` jobs are processed in the request that created them.  Every other
source type is handed to the scheduler; when the scheduler declines, the job
is processed in the request too.  Failures are terminal: the orchestrator
records the message on the job and never retries it (connectors retry their
own network calls before giving up).
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

import structlog

from mindweave.interfaces.connector import IConnector
from mindweave.interfaces.record_store import INGESTION_JOBS, IRecordStore
from mindweave.interfaces.scheduler import IScheduler
from mindweave.models.ingestion import (
    ContentSourceList,
    ContentSourceSummary,
    IngestionJob,
    IngestionStatus,
    JobStatus,
    ProcessedContent,
    SourceType,
)
from mindweave.services.ingestion.chunker import (
    TextChunker,
    build_summary,
    generate_content_hash,
)
from mindweave.utils.errors import (
    IngestionTimeoutError,
    NotFoundError,
    UnsupportedSourceError,
    failure_message,
)
from mindweave.utils.logging import bind_job_context

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Creates, runs and reports on ingestion jobs.

    Parameters
    ----------
    store:
        Persistence for :class:`IngestionJob` records.
    scheduler:
        Background executor; ``submit`` returning ``False`` means "run it now".
    connectors:
        Registry keyed by source type (see ``build_connector_registry``).
    chunker:
        Splits extracted text into :class:`ContentChunk` objects.
    """

    def __init__(
        self,
        store: IRecordStore,
        scheduler: IScheduler,
        connectors: dict[SourceType, IConnector],
        chunker: TextChunker,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._connectors = dict(connectors)
        self._chunker = chunker

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create_job(
        self,
        workspace_id: str,
        user_id: str,
        source_type: SourceType | str,
        payload: dict[str, Any],
    ) -> str:
        """Validate *payload*, persist a pending job and start processing it.

        Returns
        -------
        str
            The new job id.

        Raises
        ------
        UnsupportedSourceError
            Unknown *source_type*; nothing is persisted.
        ValidationError, SizeLimitExceededError
            Payload rejected by the connector; nothing is persisted.
        MindweaveError
            When the job is processed in this call and fails.  The job is
            left ``failed`` with the error message.
        """
        connector = self._get_connector(source_type)
        parsed = connector.parse_payload(payload)

        job = IngestionJob(
            id=str(uuid.uuid4()),
            workspace_id=workspace_id,
            user_id=user_id,
            source_type=connector.source_type,
            raw_payload=parsed.model_dump(mode="json"),
        )
        await self._store.create(INGESTION_JOBS, job)
        logger.info(
            "ingestion_job_created",
            job_id=job.id,
            source_type=job.source_type.value,
            workspace_id=workspace_id,
        )

        if job.source_type is SourceType.TEXT:
            await self.process_job(job.id)
        elif not self._scheduler.submit(job.id, self.process_job):
            logger.warning(
                "scheduler_unavailable_processing_inline",
                job_id=job.id,
                scheduler=self._scheduler.get_scheduler_name(),
            )
            await self.process_job(job.id)
        return job.id

    async def process_job(self, job_id: str) -> None:
        """Run one pending job to a terminal state.

        Jobs that are no longer ``pending`` (a duplicate delivery, or a job
        already finished) are left untouched.

        Raises
        ------
        NotFoundError
            Unknown *job_id*.
        MindweaveError
            Whatever the connector raised; the job is marked ``failed``
            first.
        """
        job = await self._require_job(job_id)
        if job.status is not JobStatus.PENDING:
            logger.info("ingestion_job_skipped", job_id=job_id, status=job.status.value)
            return

        with bind_job_context(job_id=job_id, source_type=job.source_type.value):
            await self._store.update(INGESTION_JOBS, job_id, {"status": JobStatus.PROCESSING})
            try:
                connector = self._get_connector(job.source_type)
                extracted = await connector.extract(job.raw_payload)
                meta = extracted.metadata
                chunks = self._chunker.chunk_text(
                    extracted.text,
                    source_type=job.source_type,
                    metadata={
                        "title": meta.title,
                        "url": meta.url,
                        "author": meta.author,
                        "timestamp": meta.timestamp,
                    },
                )
                processed = ProcessedContent(
                    chunks=chunks,
                    summary=build_summary(extracted.text),
                    word_count=meta.word_count,
                    citations=extracted.citations,
                )
                # Terminal status and result are written in one update.
                await self._store.update(
                    INGESTION_JOBS,
                    job_id,
                    {
                        "status": JobStatus.COMPLETED,
                        "processed_content": processed,
                        "metadata": meta.model_dump(exclude_none=True),
                        "content_hash": generate_content_hash(extracted.text),
                        "size_bytes": len(extracted.text.encode("utf-8")),
                        "error": None,
                    },
                )
            except (asyncio.CancelledError, Exception) as exc:
                error = failure_message(exc)
                logger.error("ingestion_job_failed", error=error, error_type=type(exc).__name__)
                await self._store.update(
                    INGESTION_JOBS,
                    job_id,
                    {"status": JobStatus.FAILED, "error": error},
                )
                raise

            logger.info(
                "ingestion_job_completed",
                word_count=meta.word_count,
                chunks=len(chunks),
            )

    async def get_status(self, job_id: str) -> IngestionStatus:
        job = await self._require_job(job_id)
        return IngestionStatus(status=job.status, error=job.error, metadata=job.metadata)

    async def get_processed_content(self, job_id: str) -> ProcessedContent | None:
        """Return the processed content, or ``None`` until the job completes."""
        job = await self._require_job(job_id)
        if job.status is not JobStatus.COMPLETED:
            return None
        return job.processed_content

    async def list_content_sources(
        self,
        workspace_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> ContentSourceList:
        """List a workspace's ingestion jobs, newest first."""
        jobs = await self._store.find(
            INGESTION_JOBS,
            workspace_id=workspace_id,
            order_by="created_at",
            descending=True,
            limit=limit,
            offset=offset,
        )
        total = await self._store.count(INGESTION_JOBS, workspace_id=workspace_id)
        sources = [
            ContentSourceSummary(
                id=job.id,
                source_type=job.source_type,
                status=job.status,
                title=(job.metadata or {}).get("title"),
                url=(job.metadata or {}).get("url"),
                size_bytes=job.size_bytes,
                content_hash=job.content_hash,
                error=job.error,
                created_at=job.created_at,
            )
            for job in jobs
        ]
        return ContentSourceList(sources=sources, total=total, limit=limit, offset=offset)

    async def delete_content_source(self, job_id: str) -> None:
        if not await self._store.delete(INGESTION_JOBS, job_id):
            raise NotFoundError(message=f"Content source not found: {job_id}")
        logger.info("content_source_deleted", job_id=job_id)

    async def wait_for_completion(
        self,
        job_id: str,
        poll_interval: float = 1.0,
        timeout: float = 60.0,
    ) -> IngestionStatus:
        """Poll until the job is terminal.

        Returns the terminal status (``completed`` or ``failed``); callers
        decide what a failure means for them.

        Raises
        ------
        IngestionTimeoutError
            If the job is still running after *timeout* seconds.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            status = await self.get_status(job_id)
            if status.status.is_terminal:
                return status
            if loop.time() + poll_interval > deadline:
                raise IngestionTimeoutError(
                    message=f"Ingestion job {job_id} did not finish within {timeout:g}s"
                )
            await asyncio.sleep(poll_interval)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_connector(self, source_type: SourceType | str) -> IConnector:
        try:
            key = SourceType(source_type)
        except ValueError:
            key = None
        connector = self._connectors.get(key) if key is not None else None
        if connector is None:
            raise UnsupportedSourceError(message=f"Unsupported source type: {source_type}")
        return connector

    async def _require_job(self, job_id: str) -> IngestionJob:
        job = await self._store.get(INGESTION_JOBS, job_id)
        if job is None:
            raise NotFoundError(message=f"Ingestion job not found: {job_id}")
        return job
