"""Citation model shared by extracted content and outline nodes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Citation(BaseModel):
    """Attribution for a piece of extracted content or an outline node.

    Connectors attach citations to :class:`ExtractedContent`; the synthesis
    engine copies them onto individual nodes when the model cites a source.
    ``summary`` and ``id`` only appear on node citations.
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    url: str | None = None
    author: str | None = None
    excerpt: str | None = None
    summary: str | None = None
    timestamp: str | None = Field(default=None, description="ISO-8601 timestamp, if known.")
    id: str | None = None
