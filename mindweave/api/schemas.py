"""Pydantic request/response schemas for the Mindweave API.

Request schemas end with ``Request`` and response schemas with
``Response``.  Domain models (``ProcessedContent``, ``OutlineDocument``,
``GenerationJob`` ...) are returned as-is where their shape is already the
public contract.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

from mindweave.models.ingestion import JobStatus, ProcessedContent, SourceType
from mindweave.models.outline import ComplexityLevel
from mindweave.services.ingestion.connectors.youtube import extract_video_id


class IngestRequest(BaseModel):
    """Create an ingestion job.

    ``source_type`` is a plain string so that unknown types reach the
    service and fail as "unsupported source" rather than as a schema error.
    """

    workspace_id: str = Field(min_length=1)
    user_id: str = Field(default="anonymous", min_length=1)
    source_type: str
    payload: dict[str, Any]


class IngestResponse(BaseModel):
    job_id: str
    status: JobStatus


class IngestionStatusResponse(BaseModel):
    job_id: str
    status: JobStatus
    error: str | None = None
    metadata: dict[str, Any] | None = None


class ProcessedContentResponse(BaseModel):
    """``content`` is ``null`` until the job completes."""

    job_id: str
    content: ProcessedContent | None = None


class SourceInput(BaseModel):
    source_type: str
    payload: dict[str, Any]


class GenerateMapRequest(BaseModel):
    """Start a streamed mind map generation.

    At least one of ``prompt``, ``source_url`` or ``source`` is required.
    ``source_url`` is shorthand for a YouTube or web source, picked by URL.
    """

    workspace_id: str = Field(min_length=1)
    user_id: str | None = None
    prompt: str | None = Field(default=None, max_length=10000)
    source_url: str | None = None
    source: SourceInput | None = None
    complexity: ComplexityLevel = ComplexityLevel.MODERATE
    provider: str | None = None
    existing_map_id: str | None = None

    @model_validator(mode="after")
    def _require_input(self) -> GenerateMapRequest:
        if not ((self.prompt or "").strip() or self.source_url or self.source):
            raise ValueError("One of prompt, source_url or source is required")
        return self

    def resolved_source(self) -> SourceInput | None:
        if self.source is not None:
            return self.source
        if self.source_url:
            if extract_video_id(self.source_url):
                return SourceInput(source_type=SourceType.YOUTUBE.value, payload={"url": self.source_url})
            return SourceInput(source_type=SourceType.WEB.value, payload={"url": self.source_url})
        return None


class ExpandNodeRequest(BaseModel):
    user_id: str | None = None
    prompt: str | None = Field(default=None, max_length=2000)
    depth: int | None = Field(default=None, ge=1, le=5)
    provider: str | None = None
    complexity: ComplexityLevel = ComplexityLevel.MODERATE


class RegenerateNodeRequest(BaseModel):
    user_id: str | None = None
    prompt: str | None = Field(default=None, max_length=2000)
    provider: str | None = None
    complexity: ComplexityLevel = ComplexityLevel.MODERATE


class SummarizeRequest(BaseModel):
    user_id: str | None = None
    provider: str | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
    errors: list[str] | None = None
