"""Abstract base class for the structured record store.

The store is the single source of truth for jobs and outlines.  Records are
pydantic models grouped into named collections; each collection has a fixed
set of indexed fields that ``find``/``count`` may filter and sort on.

    Collection          Record model       Indexed fields
    ─────────────────────────────────────────────────────────────────
    ingestion_jobs      IngestionJob       workspace_id, created_at
    generation_jobs     GenerationJob      mind_map_id, created_at
    mind_maps           MindMapRecord      workspace_id, created_at
    nodes               NodeRecord         mind_map_id, parent_id, order

``update`` is atomic per record: every field in ``changes`` is written
together, so a job's terminal status and its result/error never diverge.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from mindweave.models.generation import GenerationJob
from mindweave.models.ingestion import IngestionJob
from mindweave.models.outline import MindMapRecord, NodeRecord

INGESTION_JOBS = "ingestion_jobs"
GENERATION_JOBS = "generation_jobs"
MIND_MAPS = "mind_maps"
NODES = "nodes"

RECORD_TYPES: dict[str, type[BaseModel]] = {
    INGESTION_JOBS: IngestionJob,
    GENERATION_JOBS: GenerationJob,
    MIND_MAPS: MindMapRecord,
    NODES: NodeRecord,
}

INDEXED_FIELDS: dict[str, tuple[str, ...]] = {
    INGESTION_JOBS: ("workspace_id", "created_at"),
    GENERATION_JOBS: ("mind_map_id", "created_at"),
    MIND_MAPS: ("workspace_id", "created_at"),
    NODES: ("mind_map_id", "parent_id", "order"),
}


class IRecordStore(ABC):
    """Contract for record persistence backends."""

    async def initialize(self) -> None:
        """Prepare the backend (create tables, open files).  Optional."""

    async def close(self) -> None:
        """Release backend resources.  Optional."""

    @abstractmethod
    async def create(self, collection: str, record: BaseModel) -> None:
        """Insert ``record``.  Raises ``ValueError`` if the id already exists."""

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> Any | None:
        """Return the record with ``record_id`` or ``None``."""

    @abstractmethod
    async def update(self, collection: str, record_id: str, changes: dict[str, Any]) -> Any:
        """Apply ``changes`` to one record atomically and return the new record.

        Raises
        ------
        mindweave.utils.errors.NotFoundError
            If no record has ``record_id``.
        """

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> bool:
        """Delete one record.  Returns ``False`` if it did not exist."""

    @abstractmethod
    async def find(
        self,
        collection: str,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
        **filters: Any,
    ) -> list[Any]:
        """Return records whose indexed fields equal ``filters``."""

    @abstractmethod
    async def count(self, collection: str, **filters: Any) -> int:
        """Return the number of records matching ``filters``."""


def check_indexed(collection: str, fields: list[str]) -> None:
    """Raise ``ValueError`` for unknown collections or non-indexed fields."""
    if collection not in RECORD_TYPES:
        raise ValueError(f"Unknown collection: {collection}")
    allowed = INDEXED_FIELDS[collection]
    for field in fields:
        if field not in allowed:
            raise ValueError(f"{collection}.{field} is not an indexed field")
