"""LanceDB-backed vector store.

The table is created on the first upsert, once the embedding dimension is
known. Metadata is stored as a JSON string. ``content_type`` and
``conversation_id`` are also copied into their own columns so ``where``
filters on them run in SQL before the nearest-neighbour search. Filters on
any other key are applied to the search results, over-fetching to compensate.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import lancedb
import pyarrow as pa

from .vector import ScoredRecord, VectorRecord, matches

logger = logging.getLogger(__name__)

_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, Any] = {}

DEFAULT_TABLE = "ragent_vectors"
OVERFETCH = 4
FILTER_COLUMNS = ("content_type", "conversation_id")


def _get_connection(db_path: str) -> Any:
    """Return a shared LanceDB connection for ``db_path``."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


def _schema(dimension: int) -> pa.Schema:
    return pa.schema([
        pa.field("id", pa.utf8()),
        pa.field("text", pa.utf8()),
        pa.field("metadata", pa.utf8()),
        *(pa.field(name, pa.utf8(), nullable=True) for name in FILTER_COLUMNS),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
    ])


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _column_value(metadata: Mapping[str, Any], key: str) -> str | None:
    value = metadata.get(key)
    return value if isinstance(value, str) else None


class LanceVectorStore:
    """VectorStore persisted in a LanceDB table."""

    def __init__(self, db_path: Path | str, table_name: str = DEFAULT_TABLE) -> None:
        self.db_path = str(db_path)
        self.table_name = table_name
        self.db = _get_connection(self.db_path)
        self.table = None
        # list_tables() returns a paged response on recent lancedb releases
        listing = self.db.list_tables()
        if table_name in getattr(listing, "tables", listing):
            self.table = self.db.open_table(table_name)

    def _ensure_table(self, dimension: int) -> Any:
        if self.table is None:
            self.table = self.db.create_table(
                self.table_name, schema=_schema(dimension), exist_ok=True
            )
            logger.info("Created LanceDB table '%s' (dim=%d)", self.table_name, dimension)
        return self.table

    def _upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        table = self._ensure_table(len(records[0].embedding))
        ids = ", ".join(_quote(r.id) for r in records)
        table.delete(f"id IN ({ids})")
        table.add([
            {
                "id": r.id,
                "text": r.text,
                "metadata": json.dumps(r.metadata, default=str),
                **{name: _column_value(r.metadata, name) for name in FILTER_COLUMNS},
                "vector": [float(x) for x in r.embedding],
            }
            for r in records
        ])

    def _split_where(
        self, where: Mapping[str, Any] | None
    ) -> tuple[str | None, dict[str, Any]]:
        """Split ``where`` into a SQL prefilter and the items left to match in Python."""
        if not where:
            return None, {}
        columns = set(self.table.schema.names)
        clauses = []
        remaining = {}
        for key, value in where.items():
            if key in FILTER_COLUMNS and key in columns and isinstance(value, str):
                clauses.append(f"{key} = {_quote(value)}")
            else:
                remaining[key] = value
        return (" AND ".join(clauses) or None), remaining

    def _query(
        self,
        embedding: list[float],
        top_k: int,
        where: Mapping[str, Any] | None,
    ) -> list[ScoredRecord]:
        if self.table is None or top_k <= 0:
            return []
        sql, remaining = self._split_where(where)
        search = self.table.search(embedding).distance_type("cosine")
        if sql:
            search = search.where(sql, prefilter=True)
        rows = search.limit(top_k * OVERFETCH if remaining else top_k).to_list()
        hits = []
        for row in rows:
            metadata = json.loads(row["metadata"] or "{}")
            if not matches(metadata, remaining):
                continue
            record = VectorRecord(
                id=row["id"],
                text=row["text"],
                embedding=list(row["vector"]),
                metadata=metadata,
            )
            hits.append(ScoredRecord(record, 1.0 - float(row["_distance"])))
        return hits[:top_k]

    def _delete(self, ids: list[str]) -> int:
        if self.table is None or not ids:
            return 0
        before = self.table.count_rows()
        self.table.delete(f"id IN ({', '.join(_quote(i) for i in ids)})")
        return before - self.table.count_rows()

    async def upsert(self, records: list[VectorRecord]) -> None:
        await asyncio.to_thread(self._upsert, records)

    async def query(
        self,
        embedding: list[float],
        top_k: int,
        where: Mapping[str, Any] | None = None,
    ) -> list[ScoredRecord]:
        return await asyncio.to_thread(self._query, embedding, top_k, where)

    async def delete(self, ids: list[str]) -> int:
        return await asyncio.to_thread(self._delete, ids)

    def count(self) -> int:
        if self.table is None:
            return 0
        return self.table.count_rows()

    def __repr__(self) -> str:
        return f"LanceVectorStore(db='{self.db_path}', table='{self.table_name}', rows={self.count()})"
