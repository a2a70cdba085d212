"""Ingestion data models: payloads, extracted content, chunks and jobs.

Payload models describe what a caller may submit for each source type and
are validated before any job record is written.  ``ExtractedContent`` is the
output of exactly one connector; ``ContentChunk`` and ``ProcessedContent``
are derived from it by the chunker.  ``IngestionJob`` is the persisted
lifecycle record:

    pending -> processing -> completed | failed

All models are frozen; state transitions produce new instances through the
record store's ``update`` call.
"""

from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from mindweave.models.citation import Citation


class SourceType(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Kinds of external content a connector can ingest."""

    TEXT = "text"
    YOUTUBE = "youtube"
    PDF = "pdf"
    WEB = "web"
    WEBSEARCH = "websearch"


class JobStatus(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Lifecycle states shared by ingestion and generation jobs."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


def _require_http_url(value: str) -> str:
    parsed = urlparse(value.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid URL: {value!r}")
    return value.strip()


class TextPayload(BaseModel):
    """Pasted plain text."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    text: str = Field(min_length=1)
    title: str | None = None

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be blank")
        return value


class YouTubePayload(BaseModel):
    """A video reference; ``video_id`` is derived from ``url`` when omitted."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    video_id: str | None = None

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _require_http_url(value)


class PdfPayload(BaseModel):
    """A document given either as a URL or as raw bytes.

    ``file_bytes`` accepts base64 text on input (JSON callers) and is
    written back out as base64 in JSON mode so the payload survives a trip
    through the record store.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    filename: str = Field(min_length=1)
    file_url: str | None = None
    file_bytes: bytes | None = None

    @field_validator("file_url")
    @classmethod
    def _check_url(cls, value: str | None) -> str | None:
        return _require_http_url(value) if value is not None else None

    @field_validator("file_bytes", mode="before")
    @classmethod
    def _decode_base64(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except binascii.Error as exc:
                raise ValueError("file_bytes must be base64-encoded") from exc
        return value

    @field_serializer("file_bytes", when_used="json")
    def _encode_base64(self, value: bytes | None) -> str | None:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "PdfPayload":
        if (self.file_url is None) == (self.file_bytes is None):
            raise ValueError("exactly one of file_url or file_bytes is required")
        return self


class WebPayload(BaseModel):
    """A single web page."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _require_http_url(value)


class WebSearchPayload(BaseModel):
    """A search query whose top results are aggregated into one document."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    query: str = Field(min_length=1, max_length=500)
    max_results: int | None = Field(default=None, ge=1, le=10)


PAYLOAD_MODELS: dict[SourceType, type[BaseModel]] = {
    SourceType.TEXT: TextPayload,
    SourceType.YOUTUBE: YouTubePayload,
    SourceType.PDF: PdfPayload,
    SourceType.WEB: WebPayload,
    SourceType.WEBSEARCH: WebSearchPayload,
}


# ---------------------------------------------------------------------------
# Extraction output
# ---------------------------------------------------------------------------


class ContentMetadata(BaseModel):
    """Metadata produced by a connector.

    Source-specific keys (``video_id``, ``page_count``, ``result_count`` ...)
    are kept as extra fields.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    title: str | None = None
    url: str | None = None
    author: str | None = None
    timestamp: str | None = None
    word_count: int = Field(default=0, ge=0)


class ExtractedContent(BaseModel):
    """Normalized text plus attribution, produced once per ingestion."""

    model_config = ConfigDict(frozen=True)

    text: str
    metadata: ContentMetadata
    citations: list[Citation] = Field(default_factory=list)


class ChunkMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=0)
    source_type: SourceType
    # Leading characters (overlap text plus one separator) carried over
    # from the previous chunk; text[overlap_chars:] is new content.
    overlap_chars: int = Field(default=0, ge=0)
    title: str | None = None
    url: str | None = None
    author: str | None = None
    timestamp: str | None = None


class ContentChunk(BaseModel):
    """A bounded, overlap-aware slice of normalized text."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    tokens_estimate: int = Field(ge=0)
    metadata: ChunkMetadata


class ProcessedContent(BaseModel):
    """What downstream consumers read once an ingestion job completes."""

    model_config = ConfigDict(frozen=True)

    chunks: list[ContentChunk] = Field(default_factory=list)
    summary: str = ""
    word_count: int = Field(default=0, ge=0)
    citations: list[Citation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Job records
# ---------------------------------------------------------------------------


class IngestionJob(BaseModel):
    """Persisted lifecycle record for one ingestion."""

    model_config = ConfigDict(frozen=True)

    id: str
    workspace_id: str
    user_id: str
    source_type: SourceType
    status: JobStatus = JobStatus.PENDING
    raw_payload: dict[str, Any] = Field(default_factory=dict)
    processed_content: ProcessedContent | None = None
    metadata: dict[str, Any] | None = None
    content_hash: str | None = None
    size_bytes: int | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class IngestionStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: JobStatus
    error: str | None = None
    metadata: dict[str, Any] | None = None


class ContentSourceSummary(BaseModel):
    """Listing view of an ingestion job, without the heavy processed content."""

    model_config = ConfigDict(frozen=True)

    id: str
    source_type: SourceType
    status: JobStatus
    title: str | None = None
    url: str | None = None
    size_bytes: int | None = None
    content_hash: str | None = None
    error: str | None = None
    created_at: datetime


class ContentSourceList(BaseModel):
    model_config = ConfigDict(frozen=True)

    sources: list[ContentSourceSummary] = Field(default_factory=list)
    total: int = 0
    limit: int = 50
    offset: int = 0
