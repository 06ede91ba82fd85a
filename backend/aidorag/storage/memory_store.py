"""In-memory relational store and file storage."""

import copy
import threading
import uuid
from datetime import UTC, datetime
from typing import Any

from aidorag.core.exceptions import StoreError


def _matches(row: dict[str, Any], conditions: dict[str, Any] | None) -> bool:
    for column, value in (conditions or {}).items():
        if value is None:
            if row.get(column) is not None:
                return False
        elif row.get(column) != value:
            return False
    return True


def _project(row: dict[str, Any], columns: str) -> dict[str, Any]:
    if columns.strip() == "*":
        return copy.deepcopy(row)
    wanted = [c.strip() for c in columns.split(",") if c.strip()]
    return {c: copy.deepcopy(row.get(c)) for c in wanted}


class InMemoryStore:
    """Dict-backed table store with thread-safe access.

    Used for local development and tests when Supabase is not configured.
    Deleting a document cascades to its chunks, as the real schema does.
    """

    def __init__(self) -> None:
        """Initialize empty tables."""
        self._tables: dict[str, list[dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def rows(self, table: str) -> list[dict[str, Any]]:
        """Snapshot of every row in a table."""
        with self._lock:
            return copy.deepcopy(self._tables.get(table, []))

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert rows, assigning ids and created_at where missing."""
        now = datetime.now(UTC).isoformat()
        stored = []
        for row in rows:
            item = copy.deepcopy(row)
            item.setdefault("id", str(uuid.uuid4()))
            item.setdefault("created_at", now)
            stored.append(item)

        with self._lock:
            existing = {r["id"] for r in self._tables.get(table, [])}
            batch_ids = [r["id"] for r in stored]
            if existing.intersection(batch_ids) or len(set(batch_ids)) != len(batch_ids):
                raise StoreError("duplicate key value violates unique constraint", table)
            self._tables.setdefault(table, []).extend(stored)

        return copy.deepcopy(stored)

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        match: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows matching all conditions."""
        updated = []
        with self._lock:
            for row in self._tables.get(table, []):
                if _matches(row, match):
                    row.update(copy.deepcopy(values))
                    updated.append(copy.deepcopy(row))
        return updated

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Select rows matching all filters.

        ``order_by`` is a column name, prefixed with ``-`` for descending.
        """
        with self._lock:
            found = [row for row in self._tables.get(table, []) if _matches(row, filters)]

        if order_by:
            column = order_by.lstrip("-")
            found = sorted(found, key=lambda r: r.get(column), reverse=order_by.startswith("-"))

        end = None if limit is None else offset + limit
        found = found[offset:end]

        return [_project(row, columns) for row in found]

    async def delete(self, table: str, match: dict[str, Any]) -> int:
        """Delete rows matching all conditions."""
        with self._lock:
            rows = self._tables.get(table, [])
            removed = [r for r in rows if _matches(r, match)]
            self._tables[table] = [r for r in rows if not _matches(r, match)]

            if table == "documents" and removed:
                doc_ids = {r["id"] for r in removed}
                self._tables["chunks"] = [
                    c for c in self._tables.get("chunks", []) if c.get("document_id") not in doc_ids
                ]

        return len(removed)

    async def count(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count rows matching all filters."""
        with self._lock:
            return sum(1 for row in self._tables.get(table, []) if _matches(row, filters))


class InMemoryFileStorage:
    """Path -> bytes file storage."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self._files = dict(files or {})
        self._lock = threading.Lock()

    def paths(self) -> list[str]:
        """Sorted paths of every stored file."""
        with self._lock:
            return sorted(self._files)

    async def upload(self, path: str, content: bytes, content_type: str | None = None) -> None:
        """Store a file."""
        with self._lock:
            self._files[path] = content

    async def download(self, path: str) -> bytes:
        """Download a stored file."""
        with self._lock:
            if path not in self._files:
                raise StoreError(f"File not found: {path}", "storage")
            return self._files[path]

    async def delete(self, path: str) -> None:
        """Remove a stored file; missing paths are ignored."""
        with self._lock:
            self._files.pop(path, None)
