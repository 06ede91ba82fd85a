"""Tests for Gemini providers and the Supabase store adapter."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from postgrest.exceptions import APIError

from aidorag.core.config import GeminiConfig
from aidorag.core.exceptions import ConfigurationError, EmbeddingError, StoreError
from aidorag.llm.gemini import GeminiEmbeddingProvider, GeminiGenerationProvider
from aidorag.storage.supabase_store import SupabaseFileStorage, SupabaseStore


class TestGeminiProviders:
    """Test cases for Gemini providers."""

    def test_missing_api_key_raises(self):
        provider = GeminiEmbeddingProvider(GeminiConfig(api_key=None))

        with pytest.raises(ConfigurationError) as exc_info:
            _ = provider.client
        assert "GEMINI_API_KEY" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_embed_returns_first_vector(self):
        provider = GeminiEmbeddingProvider(GeminiConfig(api_key="test-key"))
        provider._client = SimpleNamespace(aembed_documents=AsyncMock(return_value=[[0.1, 0.2]]))

        assert await provider.embed("hello") == [0.1, 0.2]
        provider._client.aembed_documents.assert_awaited_once_with(["hello"])

    @pytest.mark.asyncio
    async def test_embed_empty_response(self):
        provider = GeminiEmbeddingProvider(GeminiConfig(api_key="test-key"))
        provider._client = SimpleNamespace(aembed_documents=AsyncMock(return_value=[]))

        with pytest.raises(EmbeddingError):
            await provider.embed("hello")

    @pytest.mark.asyncio
    async def test_generate_joins_content_parts(self):
        provider = GeminiGenerationProvider(GeminiConfig(api_key="test-key"))
        message = SimpleNamespace(content=[{"type": "text", "text": '{"entities": '}, "[]}"])
        provider._client = SimpleNamespace(ainvoke=AsyncMock(return_value=message))

        assert await provider.generate("prompt") == '{"entities": []}'


class RecordingQuery:
    """Stand-in for a postgrest request builder."""

    def __init__(self, calls: list, response=None, error: Exception | None = None):
        self.calls = calls
        self.response = response or SimpleNamespace(data=[], count=0)
        self.error = error

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def execute(self):
        if self.error:
            raise self.error
        return self.response


class TestSupabaseStore:
    """Test cases for SupabaseStore."""

    def make_store(self, query: RecordingQuery) -> SupabaseStore:
        store = SupabaseStore(url="https://example.supabase.co", service_key="service-key")
        store._client = SimpleNamespace(table=lambda name: query)
        return store

    def test_unconfigured_client(self):
        with pytest.raises(ConfigurationError):
            _ = SupabaseStore(url=None, service_key=None).client

    @pytest.mark.asyncio
    async def test_select_applies_filters_and_order(self):
        calls = []
        query = RecordingQuery(calls, SimpleNamespace(data=[{"id": "c1"}], count=None))
        store = self.make_store(query)

        rows = await store.select(
            "chunks",
            "id, content",
            {"document_id": "d1", "content_vector": None},
            order_by="-chunk_order_index",
        )

        assert rows == [{"id": "c1"}]
        assert calls == [
            ("select", ("id, content",), {}),
            ("eq", ("document_id", "d1"), {}),
            ("is_", ("content_vector", "null"), {}),
            ("order", ("chunk_order_index",), {"desc": True}),
        ]

    @pytest.mark.asyncio
    async def test_count_uses_exact_head_query(self):
        calls = []
        store = self.make_store(RecordingQuery(calls, SimpleNamespace(data=[], count=7)))

        assert await store.count("entities", {"user_id": "u1"}) == 7
        assert calls[0] == ("select", ("id",), {"count": "exact", "head": True})

    @pytest.mark.asyncio
    async def test_api_error_becomes_store_error(self):
        error = APIError({"message": "duplicate key value", "code": "23505"})
        store = self.make_store(RecordingQuery([], error=error))

        with pytest.raises(StoreError) as exc_info:
            await store.insert("chunks", [{"id": "c1"}])
        assert exc_info.value.table == "chunks"
        assert "duplicate key" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_select_page_uses_range(self):
        calls = []
        store = self.make_store(RecordingQuery(calls))

        await store.select("documents", filters={"user_id": "u1"}, order_by="-created_at", limit=50, offset=100)

        assert calls[-1] == ("range", (100, 149), {})


class TestSupabaseFileStorage:
    """Test cases for SupabaseFileStorage."""

    def make_storage(self, bucket) -> SupabaseFileStorage:
        store = SupabaseStore(url="https://example.supabase.co", service_key="service-key")
        store._client = SimpleNamespace(storage=SimpleNamespace(from_=lambda name: bucket))
        return SupabaseFileStorage(store, bucket="documents")

    @pytest.mark.asyncio
    async def test_delete_removes_path(self):
        bucket = MagicMock()

        await self.make_storage(bucket).delete("u1/d1/notes.txt")

        bucket.remove.assert_called_once_with(["u1/d1/notes.txt"])

    @pytest.mark.asyncio
    async def test_delete_error_becomes_store_error(self):
        bucket = MagicMock()
        bucket.remove.side_effect = RuntimeError("bucket offline")

        with pytest.raises(StoreError) as exc_info:
            await self.make_storage(bucket).delete("u1/d1/notes.txt")
        assert exc_info.value.table == "storage"
