"""Outline (mind map) data contract.

Two representations of the same tree live here:

* the **tree view** (:class:`OutlineNode` with nested ``children``) that
  the synthesis engine parses from model output and the API returns, and
* the **flat arena** (:class:`NodeRecord`) that the record store persists,
  one record per node linked by ``parent_id``.

:func:`mindweave.utils.outline_tree.build_tree_from_flat` turns the arena
back into a tree.  The tree view is disposable; the arena is the source of
truth.

Invariants checked by :mod:`mindweave.services.outline_validator`:
    - root nodes have ``level == 0``; children have ``parent.level + 1``
    - node ids are unique across the whole document
    - sibling ``order`` values are unique (duplicate => warning)
    - ``metadata.total_nodes`` / ``max_depth`` match the tree (mismatch => warning)
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mindweave.models.citation import Citation


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ComplexityLevel(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Prompt-shaping presets controlling generation breadth and depth."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    DETAILED = "detailed"
    EXPERT = "expert"


class NodeShape(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    DIAMOND = "diamond"
    HEXAGON = "hexagon"


class VisualMetadata(BaseModel):
    """Canvas placement hints.  Rendering itself happens elsewhere."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    width: float = Field(default=200.0, gt=0)
    height: float = Field(default=100.0, gt=0)
    color: str | None = None
    shape: NodeShape = NodeShape.RECTANGLE
    is_collapsed: bool = False


class OutlineNode(BaseModel):
    """One node of the outline tree (recursive)."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    title: str | None = None
    content: str = Field(min_length=1)
    parent_id: str | None = None
    level: int = Field(default=0, ge=0)
    order: int = Field(default=0, ge=0)
    visual: VisualMetadata = Field(default_factory=VisualMetadata)
    citations: list[Citation] = Field(default_factory=list)
    children: list[OutlineNode] = Field(default_factory=list)


class OutlineMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_nodes: int = Field(default=0, ge=0)
    max_depth: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OutlineDocument(BaseModel):
    """A whole mind map in tree form."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    title: str = Field(min_length=1)
    description: str | None = None
    summary: str | None = None
    prompt: str | None = None
    provider: str | None = None
    complexity: ComplexityLevel = ComplexityLevel.MODERATE
    root_nodes: list[OutlineNode] = Field(default_factory=list)
    metadata: OutlineMetadata = Field(default_factory=OutlineMetadata)


class FlatOutlineNode(BaseModel):
    """A node without its ``children``, as produced by ``flatten_nodes``."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    title: str | None = None
    content: str
    parent_id: str | None = None
    level: int = 0
    order: int = 0
    visual: VisualMetadata = Field(default_factory=VisualMetadata)
    citations: list[Citation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Persistence records (flat arena)
# ---------------------------------------------------------------------------


class MindMapRecord(BaseModel):
    """Stored header of an outline document; its nodes live in ``nodes``."""

    model_config = ConfigDict(frozen=True)

    id: str
    workspace_id: str
    title: str
    description: str | None = None
    summary: str | None = None
    prompt: str | None = None
    provider: str | None = None
    complexity: ComplexityLevel = ComplexityLevel.MODERATE
    total_nodes: int = 0
    max_depth: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class NodeRecord(BaseModel):
    """Stored outline node.  Children are found by ``parent_id``."""

    model_config = ConfigDict(frozen=True)

    id: str
    mind_map_id: str
    parent_id: str | None = None
    title: str | None = None
    content: str
    level: int = Field(ge=0)
    order: int = Field(ge=0)
    visual: VisualMetadata = Field(default_factory=VisualMetadata)
    citations: list[Citation] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Validation / diff results
# ---------------------------------------------------------------------------


class ValidationResult(BaseModel):
    """Outcome of validating a node or document.

    ``errors`` make the input invalid; ``warnings`` never do.  The parsed
    model is attached when validation succeeds.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    node: OutlineNode | None = None
    document: OutlineDocument | None = None


class NodeModification(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    old: FlatOutlineNode
    new: FlatOutlineNode


class OutlineDiff(BaseModel):
    """Node-level difference between two versions of a document."""

    model_config = ConfigDict(frozen=True)

    added: list[FlatOutlineNode] = Field(default_factory=list)
    removed: list[FlatOutlineNode] = Field(default_factory=list)
    modified: list[NodeModification] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


class ExportFormat(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    MARKDOWN = "markdown"
    TEXT = "text"
    JSON = "json"


class ExportResult(BaseModel):
    """A rendered outline plus the filename and media type to serve it with."""

    model_config = ConfigDict(frozen=True)

    content: str
    filename: str
    media_type: str
