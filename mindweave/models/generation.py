"""Synthesis data models: provider options/responses and generation jobs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mindweave.models.ingestion import JobStatus
from mindweave.models.outline import OutlineDocument, OutlineNode


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class GenerationOperation(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    GENERATE = "generate"
    EXPAND = "expand"
    REGENERATE = "regenerate"
    SUMMARIZE = "summarize"


class GenerationOptions(BaseModel):
    """Per-call options passed to an :class:`ILLMProvider`."""

    model_config = ConfigDict(frozen=True)

    system_prompt: str = ""
    model: str | None = None
    max_tokens: int = Field(default=4000, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    json_mode: bool = False


class ProviderResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    tokens_used: int = Field(default=0, ge=0)
    provider: str
    model: str


class GenerationJob(BaseModel):
    """Audit and token-accounting record for one synthesis operation."""

    model_config = ConfigDict(frozen=True)

    id: str
    operation: GenerationOperation
    prompt: str
    provider: str
    model: str | None = None
    node_id: str | None = None
    mind_map_id: str | None = None
    workspace_id: str | None = None
    user_id: str | None = None
    status: JobStatus = JobStatus.PENDING
    result: dict[str, Any] | None = None
    tokens_used: int | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Engine results
# ---------------------------------------------------------------------------


class GenerationResult(BaseModel):
    """Outcome of ``generate_outline``: the persisted document with ids."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    map_id: str
    document: OutlineDocument
    tokens_used: int = 0
    provider: str


class NodeUpdateResult(BaseModel):
    """Outcome of ``expand_node`` / ``regenerate_branch``."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    map_id: str
    node: OutlineNode
    created_node_ids: list[str] = Field(default_factory=list)
    removed_node_ids: list[str] = Field(default_factory=list)
    tokens_used: int = 0
    provider: str


class SummaryResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    map_id: str
    summary: str
    tokens_used: int = 0
    provider: str
