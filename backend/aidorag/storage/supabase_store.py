"""Supabase-backed relational store and file storage.

supabase-py issues blocking HTTP calls, so every ``execute()`` is moved off
the event loop with ``asyncio.to_thread``.
"""

import asyncio
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from aidorag.core.exceptions import ConfigurationError, StoreError
from aidorag.core.logging import get_logger

logger = get_logger(__name__)


def _apply_filters(query: Any, conditions: dict[str, Any] | None) -> Any:
    for column, value in (conditions or {}).items():
        query = query.is_(column, "null") if value is None else query.eq(column, value)
    return query


class SupabaseStore:
    """Relational store over Supabase PostgREST tables."""

    def __init__(self, url: str | None, service_key: str | None) -> None:
        """Initialize the store.

        Args:
            url: Supabase project URL
            service_key: Supabase service role key (bypasses row level security)
        """
        self._url = url
        self._service_key = service_key
        self._client: Client | None = None

    @property
    def client(self) -> Client:
        """Get Supabase client (lazy initialization)."""
        if self._client is None:
            if not self._url:
                raise ConfigurationError("SUPABASE_URL environment variable is not set")
            if not self._service_key:
                raise ConfigurationError("SUPABASE_SERVICE_KEY environment variable is not set")
            self._client = create_client(self._url, self._service_key)
        return self._client

    async def _execute(self, table: str, query: Any) -> Any:
        try:
            return await asyncio.to_thread(query.execute)
        except APIError as e:
            logger.error("supabase_query_failed", table=table, error=e.message, code=e.code)
            raise StoreError(e.message or str(e), table) from e
        except httpx.HTTPError as e:
            logger.error("supabase_request_failed", table=table, error=str(e))
            raise StoreError(f"Request to Supabase failed: {e}", table) from e

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert rows in a single call."""
        response = await self._execute(table, self.client.table(table).insert(rows))
        return response.data or []

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        match: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows matching all conditions."""
        query = _apply_filters(self.client.table(table).update(values), match)
        response = await self._execute(table, query)
        return response.data or []

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Select rows matching all filters."""
        query = _apply_filters(self.client.table(table).select(columns), filters)
        if order_by:
            query = query.order(order_by.lstrip("-"), desc=order_by.startswith("-"))
        if limit is not None:
            query = query.range(offset, offset + limit - 1)
        elif offset:
            query = query.offset(offset)
        response = await self._execute(table, query)
        return response.data or []

    async def delete(self, table: str, match: dict[str, Any]) -> int:
        """Delete rows matching all conditions."""
        query = _apply_filters(self.client.table(table).delete(), match)
        response = await self._execute(table, query)
        return len(response.data or [])

    async def count(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count rows matching all filters."""
        query = _apply_filters(
            self.client.table(table).select("id", count="exact", head=True),
            filters,
        )
        response = await self._execute(table, query)
        return response.count or 0


class SupabaseFileStorage:
    """Uploaded files in a Supabase storage bucket."""

    def __init__(self, store: SupabaseStore, bucket: str = "documents") -> None:
        self._store = store
        self.bucket = bucket

    async def upload(self, path: str, content: bytes, content_type: str | None = None) -> None:
        """Upload a file to the bucket."""
        bucket = self._store.client.storage.from_(self.bucket)
        options = {"content-type": content_type} if content_type else None
        try:
            await asyncio.to_thread(bucket.upload, path, content, options)
        except Exception as e:
            logger.error("storage_upload_failed", bucket=self.bucket, path=path, error=str(e))
            raise StoreError(f"Failed to upload file: {e}", "storage") from e

    async def download(self, path: str) -> bytes:
        """Download a stored file's raw bytes."""
        bucket = self._store.client.storage.from_(self.bucket)
        try:
            return await asyncio.to_thread(bucket.download, path)
        except Exception as e:
            logger.error("storage_download_failed", bucket=self.bucket, path=path, error=str(e))
            raise StoreError(f"Failed to download file: {e}", "storage") from e

    async def delete(self, path: str) -> None:
        """Remove a file from the bucket."""
        bucket = self._store.client.storage.from_(self.bucket)
        try:
            await asyncio.to_thread(bucket.remove, [path])
        except Exception as e:
            logger.error("storage_delete_failed", bucket=self.bucket, path=path, error=str(e))
            raise StoreError(f"Failed to delete file: {e}", "storage") from e
