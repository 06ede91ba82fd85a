"""Common test fixtures."""

import json
from typing import Any

import pytest

from aidorag.core.config import AppConfig, GeminiConfig, IngestionConfig, StorageConfig, SupabaseConfig
from aidorag.core.di_container import container as di_container
from aidorag.core.exceptions import StoreError
from aidorag.core.locks import DocumentLockManager
from aidorag.ingestion.chunker import TextChunker
from aidorag.ingestion.embeddings import EmbeddingGenerator
from aidorag.ingestion.entities import EntityExtractor
from aidorag.ingestion.pipeline import IngestionPipeline
from aidorag.ingestion.writer import ChunkStoreWriter
from aidorag.storage.memory_store import InMemoryFileStorage, InMemoryStore

DIMENSION = 768


class MockEmbeddingProvider:
    """Mock embedding provider returning fixed-size vectors.

    Texts listed in ``fail_on`` raise instead of returning a vector.
    """

    def __init__(self, dimension: int = DIMENSION, fail_on: set[str] | None = None):
        self.dimension = dimension
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise RuntimeError("embedding provider unavailable")
        # First component identifies the text so order can be checked
        return [float(len(text))] + [0.5] * (self.dimension - 1)


class MockGenerationProvider:
    """Mock generation provider replaying a canned response."""

    def __init__(self, response: str | dict | None = None, error: Exception | None = None):
        if isinstance(response, dict):
            response = json.dumps(response)
        self.response = response if response is not None else '{"entities": [], "relations": []}'
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.response


class FlakyStore(InMemoryStore):
    """In-memory store that fails selected operations."""

    def __init__(self):
        super().__init__()
        self.fail_insert_tables: set[str] = set()
        self.fail_insert_after: int | None = None
        self.fail_update_ids: set[str] = set()
        self.fail_status_updates: set[str] = set()
        self.fail_delete_tables: set[str] = set()
        self.insert_calls: list[tuple[str, int]] = []

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self.insert_calls.append((table, len(rows)))
        if table in self.fail_insert_tables:
            # fail_insert_after lets that many calls through before failing
            if not self.fail_insert_after:
                raise StoreError("insert rejected", table)
            self.fail_insert_after -= 1
        return await super().insert(table, rows)

    async def update(self, table: str, values: dict[str, Any], match: dict[str, Any]) -> list[dict[str, Any]]:
        if match.get("id") in self.fail_update_ids:
            raise StoreError("update rejected", table)
        if table == "documents" and values.get("status") in self.fail_status_updates:
            raise StoreError("status update rejected", table)
        return await super().update(table, values, match)

    async def delete(self, table: str, match: dict[str, Any]) -> int:
        if table in self.fail_delete_tables:
            raise StoreError("delete rejected", table)
        return await super().delete(table, match)


async def create_document(
    store: InMemoryStore,
    document_id: str = "doc-1",
    user_id: str = "user-1",
    status: str = "pending",
    **fields: Any,
) -> dict[str, Any]:
    """Insert a document row."""
    row = {
        "id": document_id,
        "user_id": user_id,
        "workspace": "default",
        "file_name": f"{document_id}.txt",
        "file_type": "txt",
        "file_path": f"{user_id}/{document_id}.txt",
        "status": status,
        "chunks_count": 0,
        "metadata": {},
    }
    row.update(fields)
    inserted = await store.insert("documents", [row])
    return inserted[0]


@pytest.fixture
def test_config() -> AppConfig:
    """Create test configuration."""
    return AppConfig(
        debug=True,
        log_level="DEBUG",
        gemini=GeminiConfig(api_key=None),
        ingestion=IngestionConfig(embedding_delay_ms=0),
        storage=StorageConfig(backend="in_memory"),
        supabase=SupabaseConfig(url=None, service_key=None),
    )


@pytest.fixture
def store() -> FlakyStore:
    """Create in-memory relational store."""
    return FlakyStore()


@pytest.fixture
def file_storage() -> InMemoryFileStorage:
    """Create in-memory file storage."""
    return InMemoryFileStorage()


@pytest.fixture
def locks() -> DocumentLockManager:
    """Create per-document lock registry."""
    return DocumentLockManager()


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    """Create mock embedding provider."""
    return MockEmbeddingProvider()


@pytest.fixture
def generation_provider() -> MockGenerationProvider:
    """Create mock generation provider."""
    return MockGenerationProvider()


@pytest.fixture
def embedding_generator(embedding_provider) -> EmbeddingGenerator:
    """Create embedding generator without inter-call delay."""
    return EmbeddingGenerator(embedding_provider, dimension=DIMENSION, delay_ms=0)


@pytest.fixture
def entity_extractor(generation_provider, store) -> EntityExtractor:
    """Create entity extractor over the test store."""
    return EntityExtractor(generation_provider, store)


@pytest.fixture
def pipeline(store, file_storage, embedding_generator, locks, entity_extractor) -> IngestionPipeline:
    """Create ingestion pipeline over the test store."""
    return IngestionPipeline(
        store=store,
        file_storage=file_storage,
        chunker=TextChunker(),
        embedding_generator=embedding_generator,
        writer=ChunkStoreWriter(store),
        locks=locks,
        entity_extractor=entity_extractor,
    )


@pytest.fixture
def di_container_fixture():
    """Provide the DI container for testing."""
    yield di_container
