"""SQLite-backed record store.

One table per collection.  Each row holds the full record as JSON in
``data`` plus a copy of the collection's indexed fields as real columns so
``find``/``count`` can filter and sort in SQL.  Uses ``aiosqlite`` for
async I/O and opens a connection per operation.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import aiosqlite
import structlog
from pydantic import BaseModel

from mindweave.interfaces.record_store import (
    INDEXED_FIELDS,
    RECORD_TYPES,
    IRecordStore,
    check_indexed,
)
from mindweave.providers.store.memory_store import apply_changes
from mindweave.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/mindweave.db")


def _create_table_sql(collection: str) -> str:
    columns = ",\n    ".join(f'"{field}" TEXT' for field in INDEXED_FIELDS[collection])
    return (
        f"CREATE TABLE IF NOT EXISTS {collection} (\n"
        f"    id   TEXT PRIMARY KEY,\n"
        f"    data TEXT NOT NULL,\n"
        f"    {columns}\n"
        f");"
    )


def _create_index_sql(collection: str) -> list[str]:
    return [
        f'CREATE INDEX IF NOT EXISTS idx_{collection}_{field} ON {collection}("{field}");'
        for field in INDEXED_FIELDS[collection]
    ]


def _index_values(collection: str, record: BaseModel) -> list[Any]:
    dumped = record.model_dump(mode="json")
    values = []
    for field in INDEXED_FIELDS[collection]:
        value = dumped.get(field)
        # Integer sort keys are zero-padded so TEXT ordering matches numeric ordering.
        if isinstance(value, int) and not isinstance(value, bool):
            value = f"{value:010d}"
        values.append(value)
    return values


def _filter_value(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return f"{value:010d}"
    return getattr(value, "value", value)


class SQLiteRecordStore(IRecordStore):
    """SQLite persistence for jobs, mind maps and nodes."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for collection in RECORD_TYPES:
                await db.execute(_create_table_sql(collection))
                for idx_sql in _create_index_sql(collection):
                    await db.execute(idx_sql)
            await db.commit()
        logger.info("record_store_initialized", path=str(self._db_path))

    async def create(self, collection: str, record: BaseModel) -> None:
        check_indexed(collection, [])
        fields = INDEXED_FIELDS[collection]
        columns = ", ".join(["id", "data", *(f'"{f}"' for f in fields)])
        placeholders = ", ".join("?" for _ in range(len(fields) + 2))
        async with self._write_lock, aiosqlite.connect(str(self._db_path)) as db:
            try:
                await db.execute(
                    f"INSERT INTO {collection} ({columns}) VALUES ({placeholders})",
                    (getattr(record, "id"), record.model_dump_json(), *_index_values(collection, record)),
                )
            except aiosqlite.IntegrityError as exc:
                raise ValueError(f"{collection} record {getattr(record, 'id')} already exists") from exc
            await db.commit()

    async def get(self, collection: str, record_id: str) -> Any | None:
        check_indexed(collection, [])
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(f"SELECT data FROM {collection} WHERE id = ?", (record_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return RECORD_TYPES[collection].model_validate_json(row[0])

    async def update(self, collection: str, record_id: str, changes: dict[str, Any]) -> Any:
        check_indexed(collection, [])
        fields = INDEXED_FIELDS[collection]
        assignments = ", ".join(["data = ?", *(f'"{f}" = ?' for f in fields)])
        async with self._write_lock, aiosqlite.connect(str(self._db_path)) as db:
            # Read and write inside one transaction so the row cannot change in between.
            await db.execute("BEGIN IMMEDIATE")
            cursor = await db.execute(f"SELECT data FROM {collection} WHERE id = ?", (record_id,))
            row = await cursor.fetchone()
            if row is None:
                await db.rollback()
                raise NotFoundError(message=f"{collection} record not found: {record_id}")
            current = RECORD_TYPES[collection].model_validate_json(row[0])
            updated = apply_changes(current, changes)
            await db.execute(
                f"UPDATE {collection} SET {assignments} WHERE id = ?",
                (updated.model_dump_json(), *_index_values(collection, updated), record_id),
            )
            await db.commit()
        return updated

    async def delete(self, collection: str, record_id: str) -> bool:
        check_indexed(collection, [])
        async with self._write_lock, aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(f"DELETE FROM {collection} WHERE id = ?", (record_id,))
            await db.commit()
            return cursor.rowcount > 0

    @staticmethod
    def _where(filters: dict[str, Any]) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for field, value in filters.items():
            if value is None:
                clauses.append(f'"{field}" IS NULL')
            else:
                clauses.append(f'"{field}" = ?')
                params.append(_filter_value(value))
        return (" WHERE " + " AND ".join(clauses)) if clauses else "", params

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
        where, params = self._where(filters)
        sql = f"SELECT data FROM {collection}{where}"
        if order_by:
            sql += f' ORDER BY "{order_by}" {"DESC" if descending else "ASC"}'
        if limit is not None or offset:
            sql += " LIMIT ? OFFSET ?"
            params.extend([-1 if limit is None else limit, offset])
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        model = RECORD_TYPES[collection]
        return [model.model_validate_json(row[0]) for row in rows]

    async def count(self, collection: str, **filters: Any) -> int:
        check_indexed(collection, list(filters))
        where, params = self._where(filters)
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(f"SELECT COUNT(*) FROM {collection}{where}", params)
            row = await cursor.fetchone()
        return int(row[0])
