"""Server-sent-events producer for streamed mind map generation.

A worker task runs the whole request (ingest source, wait, generate) and
puts typed events on a bounded :class:`asyncio.Queue`; the response
generator drains the queue and writes one ``data: {json}\\n\\n`` frame per
event.  The queue bound is the only backpressure: a slow client stalls the
worker at its next ``put``.

Event order::

    start -> processing* -> streaming -> node* -> map -> complete
                      (any failure) -> error

Exactly one terminal event (``complete`` or ``error``) is sent.  When the
client disconnects the generator is closed, which cancels the worker;
anything it already persisted stays in the store.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

import structlog

from mindweave.api.schemas import GenerateMapRequest
from mindweave.config.settings import Settings
from mindweave.models.events import (
    TERMINAL_EVENT_TYPES,
    CompleteEvent,
    ErrorEvent,
    MapEvent,
    NodeEvent,
    ProcessingEvent,
    StartEvent,
    StreamEvent,
    StreamingEvent,
)
from mindweave.models.ingestion import JobStatus
from mindweave.models.outline import OutlineNode
from mindweave.services.ingestion.ingestion_service import IngestionService
from mindweave.services.synthesis.engine import SynthesisEngine
from mindweave.utils.errors import ExtractionError, MindweaveError, ValidationError
from mindweave.utils.logging import bind_job_context

logger = structlog.get_logger(logger_name=__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Ingested chunks passed to the model as source material.
_MAX_SOURCE_CHUNKS = 8


class MapGenerationStream:
    """Runs one generation request and yields its SSE frames."""

    def __init__(
        self,
        ingestion: IngestionService,
        engine: SynthesisEngine,
        settings: Settings,
    ) -> None:
        self._ingestion = ingestion
        self._engine = engine
        self._poll_interval = settings.ingestion_poll_interval
        self._timeout = settings.ingestion_timeout
        self._queue_size = settings.stream_queue_size

    async def frames(self, request: GenerateMapRequest) -> AsyncIterator[str]:
        queue: asyncio.Queue[StreamEvent] = asyncio.Queue(maxsize=self._queue_size)
        worker = asyncio.create_task(self._run(request, queue))
        try:
            while True:
                event = await queue.get()
                yield event.to_sse()
                if event.type in TERMINAL_EVENT_TYPES:
                    break
        finally:
            if not worker.done():
                logger.info("generation_stream_closed_early", workspace_id=request.workspace_id)
                worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    async def _run(self, request: GenerateMapRequest, queue: asyncio.Queue[StreamEvent]) -> None:
        """Worker body: every outcome ends with exactly one terminal event."""
        try:
            await queue.put(StartEvent())
            prompt, sources = await self._prepare_input(request, queue)

            await queue.put(StreamingEvent())

            async def _on_node(node: OutlineNode, index: int) -> None:
                await queue.put(NodeEvent(node_id=node.id or "", title=node.title, index=index))

            result = await self._engine.generate_outline(
                prompt=prompt,
                workspace_id=request.workspace_id,
                user_id=request.user_id,
                provider=request.provider,
                complexity=request.complexity,
                sources=sources,
                existing_map_id=request.existing_map_id,
                progress=_on_node,
            )
            await queue.put(MapEvent(map_id=result.map_id))
            await queue.put(
                CompleteEvent(
                    map_id=result.map_id,
                    title=result.document.title,
                    node_count=result.document.metadata.total_nodes,
                    tokens_used=result.tokens_used,
                )
            )
        except asyncio.CancelledError:
            raise
        except MindweaveError as exc:
            logger.warning("generation_stream_failed", error=str(exc), error_type=type(exc).__name__)
            await queue.put(ErrorEvent(error=exc.message))
        except Exception as exc:
            logger.exception("generation_stream_crashed", error=str(exc))
            await queue.put(ErrorEvent(error="Generation failed"))

    async def _prepare_input(
        self,
        request: GenerateMapRequest,
        queue: asyncio.Queue[StreamEvent],
    ) -> tuple[str, list[str]]:
        """Ingest the request's source, if any, and return (prompt, sources)."""
        prompt = (request.prompt or "").strip()
        source = request.resolved_source()
        if source is None:
            return prompt, []

        await queue.put(ProcessingEvent(message=f"Ingesting {source.source_type} source"))
        job_id = await self._ingestion.create_job(
            workspace_id=request.workspace_id,
            user_id=request.user_id or "anonymous",
            source_type=source.source_type,
            payload=source.payload,
        )
        with bind_job_context(job_id=job_id):
            await queue.put(ProcessingEvent(message="Waiting for source content", job_id=job_id))
            status = await self._ingestion.wait_for_completion(
                job_id,
                poll_interval=self._poll_interval,
                timeout=self._timeout,
            )
            if status.status is JobStatus.FAILED:
                raise ExtractionError(message=status.error or "Failed to extract source content")

            content = await self._ingestion.get_processed_content(job_id)
            await queue.put(ProcessingEvent(message="Source content ready", job_id=job_id))

        sources = [chunk.text for chunk in content.chunks[:_MAX_SOURCE_CHUNKS]] if content else []
        prompt = prompt or (content.summary if content else "")
        if not prompt:
            raise ValidationError(message="No content to generate a mind map from")
        return prompt, sources
