"""FastAPI routes for ingestion and mind map synthesis.

Service dependencies are resolved from ``app.state`` (populated by
``main._build_all``) through ``Annotated[..., Depends(...)]`` aliases.

    Endpoint                                        Method  Description
    ──────────────────────────────────────────────────────────────────────────
    /api/v1/ingest                                  POST    Create ingestion job
    /api/v1/ingest/{job_id}                         GET     Job status
    /api/v1/ingest/{job_id}                         DELETE  Delete content source
    /api/v1/ingest/{job_id}/content                 GET     Processed content
    /api/v1/workspaces/{workspace_id}/sources       GET     List content sources
    /api/v1/maps/generate                           POST    SSE generation stream
    /api/v1/maps/{map_id}                           GET     Outline document
    /api/v1/maps/{map_id}/nodes/{node_id}/expand    POST    Expand node
    /api/v1/maps/{map_id}/nodes/{node_id}/regenerate POST   Regenerate branch
    /api/v1/maps/{map_id}/summarize                 POST    Summarize document
    /api/v1/maps/{map_id}/export                    GET     Export as markdown/text/json
    /api/v1/generation-jobs/{job_id}                GET     Generation job record
    /api/v1/health                                  GET     Health + providers
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import StreamingResponse

from mindweave.api.schemas import (
    ExpandNodeRequest,
    GenerateMapRequest,
    HealthResponse,
    IngestionStatusResponse,
    IngestRequest,
    IngestResponse,
    ProcessedContentResponse,
    RegenerateNodeRequest,
    SummarizeRequest,
)
from mindweave.api.streaming import SSE_HEADERS, MapGenerationStream
from mindweave.models.generation import GenerationJob, NodeUpdateResult, SummaryResult
from mindweave.models.ingestion import ContentSourceList
from mindweave.models.outline import ExportFormat, OutlineDocument
from mindweave.services.ingestion.ingestion_service import IngestionService
from mindweave.services.outline_export import export_outline
from mindweave.services.synthesis.engine import SynthesisEngine
from mindweave.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_synthesis_engine(request: Request) -> SynthesisEngine:
    return request.app.state.synthesis_engine


def _get_generation_stream(request: Request) -> MapGenerationStream:
    return request.app.state.generation_stream


IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
EngineDep = Annotated[SynthesisEngine, Depends(_get_synthesis_engine)]
StreamDep = Annotated[MapGenerationStream, Depends(_get_generation_stream)]


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post("/ingest", response_model=IngestResponse, status_code=202, summary="Create an ingestion job")
async def create_ingestion_job(body: IngestRequest, ingestion: IngestionDep) -> IngestResponse:
    job_id = await ingestion.create_job(
        workspace_id=body.workspace_id,
        user_id=body.user_id,
        source_type=body.source_type,
        payload=body.payload,
    )
    status = await ingestion.get_status(job_id)
    return IngestResponse(job_id=job_id, status=status.status)


@router.get("/ingest/{job_id}", response_model=IngestionStatusResponse, summary="Ingestion job status")
async def get_ingestion_status(job_id: str, ingestion: IngestionDep) -> IngestionStatusResponse:
    status = await ingestion.get_status(job_id)
    return IngestionStatusResponse(
        job_id=job_id,
        status=status.status,
        error=status.error,
        metadata=status.metadata,
    )


@router.get(
    "/ingest/{job_id}/content",
    response_model=ProcessedContentResponse,
    summary="Processed content of a completed job",
)
async def get_processed_content(job_id: str, ingestion: IngestionDep) -> ProcessedContentResponse:
    content = await ingestion.get_processed_content(job_id)
    return ProcessedContentResponse(job_id=job_id, content=content)


@router.delete("/ingest/{job_id}", status_code=204, summary="Delete a content source")
async def delete_content_source(job_id: str, ingestion: IngestionDep) -> Response:
    await ingestion.delete_content_source(job_id)
    return Response(status_code=204)


@router.get(
    "/workspaces/{workspace_id}/sources",
    response_model=ContentSourceList,
    summary="List a workspace's content sources",
)
async def list_content_sources(
    workspace_id: str,
    ingestion: IngestionDep,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ContentSourceList:
    return await ingestion.list_content_sources(workspace_id, limit=limit, offset=offset)


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


@router.post("/maps/generate", summary="Generate a mind map (server-sent events)")
async def generate_map(body: GenerateMapRequest, stream: StreamDep) -> StreamingResponse:
    _logger.info(
        "generation_stream_opened",
        workspace_id=body.workspace_id,
        has_source=body.resolved_source() is not None,
        complexity=body.complexity.value,
    )
    return StreamingResponse(
        stream.frames(body),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/maps/{map_id}", response_model=OutlineDocument, summary="Get an outline document")
async def get_map(map_id: str, engine: EngineDep) -> OutlineDocument:
    return await engine.get_outline(map_id)


@router.post(
    "/maps/{map_id}/nodes/{node_id}/expand",
    response_model=NodeUpdateResult,
    summary="Expand a node with generated children",
)
async def expand_node(
    map_id: str,
    node_id: str,
    body: ExpandNodeRequest,
    engine: EngineDep,
) -> NodeUpdateResult:
    return await engine.expand_node(
        map_id,
        node_id,
        user_id=body.user_id,
        prompt=body.prompt,
        depth=body.depth,
        provider=body.provider,
        complexity=body.complexity,
    )


@router.post(
    "/maps/{map_id}/nodes/{node_id}/regenerate",
    response_model=NodeUpdateResult,
    summary="Regenerate a node and replace its subtree",
)
async def regenerate_node(
    map_id: str,
    node_id: str,
    body: RegenerateNodeRequest,
    engine: EngineDep,
) -> NodeUpdateResult:
    return await engine.regenerate_branch(
        map_id,
        node_id,
        user_id=body.user_id,
        prompt=body.prompt,
        provider=body.provider,
        complexity=body.complexity,
    )


@router.post("/maps/{map_id}/summarize", response_model=SummaryResult, summary="Summarize a mind map")
async def summarize_map(map_id: str, body: SummarizeRequest, engine: EngineDep) -> SummaryResult:
    return await engine.summarize_outline(map_id, user_id=body.user_id, provider=body.provider)


@router.get("/maps/{map_id}/export", summary="Export a mind map as a file")
async def export_map(
    map_id: str,
    engine: EngineDep,
    export_format: Annotated[ExportFormat, Query(alias="format")] = ExportFormat.MARKDOWN,
    include_citations: bool = True,
    include_metadata: bool = True,
) -> Response:
    document = await engine.get_outline(map_id)
    exported = export_outline(document, export_format, include_citations, include_metadata)
    _logger.info("map_exported", map_id=map_id, format=export_format.value, chars=len(exported.content))
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


@router.get("/generation-jobs/{job_id}", response_model=GenerationJob, summary="Get a generation job")
async def get_generation_job(job_id: str, engine: EngineDep) -> GenerationJob:
    return await engine.get_job(job_id)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    """Report configured LLM and search providers.

    ``degraded`` means the app is up but cannot generate: no LLM key is
    configured.
    """
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    status = "healthy" if providers.get("llm") else "degraded"
    return HealthResponse(
        status=status,
        version=getattr(request.app.state, "version", "0.1.0"),
        providers=providers,
    )
