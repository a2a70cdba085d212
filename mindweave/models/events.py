"""Events emitted on the map-generation stream.

Order on a successful stream::

    start -> processing* -> streaming -> node* -> map -> complete

A single ``error`` event may replace any suffix of that sequence and always
ends the stream.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_sse(self) -> str:
        """Render as one server-sent-events frame."""
        return f"data: {self.model_dump_json(exclude_none=True)}\n\n"


class StartEvent(_Event):
    type: Literal["start"] = "start"
    message: str = "Starting mind map generation"


class ProcessingEvent(_Event):
    type: Literal["processing"] = "processing"
    message: str
    job_id: str | None = None


class StreamingEvent(_Event):
    type: Literal["streaming"] = "streaming"
    message: str = "Generating mind map"
    node_count: int | None = None


class NodeEvent(_Event):
    type: Literal["node"] = "node"
    node_id: str
    title: str | None = None
    index: int = Field(ge=1)


class MapEvent(_Event):
    type: Literal["map"] = "map"
    map_id: str


class CompleteEvent(_Event):
    type: Literal["complete"] = "complete"
    map_id: str
    title: str
    node_count: int
    tokens_used: int


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    error: str


StreamEvent = Union[
    StartEvent,
    ProcessingEvent,
    StreamingEvent,
    NodeEvent,
    MapEvent,
    CompleteEvent,
    ErrorEvent,
]

TERMINAL_EVENT_TYPES = frozenset({"complete", "error"})
