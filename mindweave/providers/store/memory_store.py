"""In-memory record store.

Default backend for development and tests.  Records are frozen pydantic
models held in per-collection dicts; an ``asyncio.Lock`` serializes writes so
each ``update`` is applied atomically.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from mindweave.interfaces.record_store import RECORD_TYPES, IRecordStore, check_indexed
from mindweave.utils.errors import NotFoundError


def apply_changes(record: BaseModel, changes: dict[str, Any]) -> BaseModel:
    """Return a re-validated copy of ``record`` with ``changes`` applied.

    ``updated_at`` is refreshed automatically on records that carry it.
    """
    data = record.model_dump()
    data.update(changes)
    if "updated_at" in type(record).model_fields and "updated_at" not in changes:
        data["updated_at"] = datetime.now(tz=timezone.utc)  # noqa: UP017
    return type(record).model_validate(data)


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts first without comparing against real values.
    return (0, "") if value is None else (1, value)


class MemoryRecordStore(IRecordStore):
    """Dict-backed :class:`IRecordStore`."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, BaseModel]] = {
            name: {} for name in RECORD_TYPES
        }
        self._lock = asyncio.Lock()

    def _collection(self, collection: str) -> dict[str, BaseModel]:
        if collection not in self._collections:
            raise ValueError(f"Unknown collection: {collection}")
        return self._collections[collection]

    async def create(self, collection: str, record: BaseModel) -> None:
        records = self._collection(collection)
        async with self._lock:
            record_id = getattr(record, "id")
            if record_id in records:
                raise ValueError(f"{collection} record {record_id} already exists")
            records[record_id] = record

    async def get(self, collection: str, record_id: str) -> Any | None:
        return self._collection(collection).get(record_id)

    async def update(self, collection: str, record_id: str, changes: dict[str, Any]) -> Any:
        records = self._collection(collection)
        async with self._lock:
            current = records.get(record_id)
            if current is None:
                raise NotFoundError(message=f"{collection} record not found: {record_id}")
            updated = apply_changes(current, changes)
            records[record_id] = updated
            return updated

    async def delete(self, collection: str, record_id: str) -> bool:
        records = self._collection(collection)
        async with self._lock:
            return records.pop(record_id, None) is not None

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
        check_indexed(collection, [*filters, *([order_by] if order_by else [])])
        matches = [
            record
            for record in self._collection(collection).values()
            if all(getattr(record, field) == value for field, value in filters.items())
        ]
        if order_by:
            matches.sort(key=lambda r: _sort_key(getattr(r, order_by)), reverse=descending)
        end = None if limit is None else offset + limit
        return matches[offset:end]

    async def count(self, collection: str, **filters: Any) -> int:
        return len(await self.find(collection, **filters))
