"""Integration tests for the API.

The DI container is overridden with in-memory storage and mock Gemini
providers, and authentication is replaced by a fixed user.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from aidorag.auth.dependencies import get_current_user
from aidorag.auth.schemas import User
from aidorag.main import create_app
from tests.conftest import MockEmbeddingProvider, MockGenerationProvider, create_document

ENTITY_RESPONSE = {
    "entities": [
        {"name": "Ada Lovelace", "type": "person", "description": "Mathematician"},
        {"name": "Analytical Engine", "type": "technology", "description": "Mechanical computer"},
    ],
    "relations": [{"source": "Ada Lovelace", "target": "Analytical Engine", "type": "wrote_about"}],
}

NOTES = (
    "Ada Lovelace wrote the first published algorithm intended for the Analytical Engine, "
    "a mechanical general-purpose computer designed by Charles Babbage."
)


@pytest.fixture
def embedding_provider():
    return MockEmbeddingProvider()


@pytest.fixture
def generation_provider():
    return MockGenerationProvider(ENTITY_RESPONSE)


@pytest.fixture
def app(di_container_fixture, test_config, store, file_storage, embedding_provider, generation_provider):
    """Create app wired to in-memory dependencies."""
    di_container_fixture.reset_singletons()
    with (
        di_container_fixture.config.override(test_config),
        di_container_fixture.store.override(store),
        di_container_fixture.file_storage.override(file_storage),
        di_container_fixture.embedding_provider.override(embedding_provider),
        di_container_fixture.generation_provider.override(generation_provider),
    ):
        app = create_app()
        app.dependency_overrides[get_current_user] = lambda: User(id="user-1", email="ada@example.com")
        yield app
    di_container_fixture.reset_singletons()


@pytest.fixture
def client(app):
    """Create test client."""
    with TestClient(app) as client:
        yield client


def upload(client, name="notes.txt", content=NOTES.encode(), content_type="text/plain"):
    return client.post("/api/v1/documents/upload", files={"file": (name, content, content_type)})


class TestHealthAPI:
    """Health check endpoints."""

    def test_health_endpoint(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["storage_backend"] == "in_memory"
        assert "embedding_model" in data

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/api/v1/health"


class TestDocumentAPI:
    """Document upload and status endpoints."""

    def test_upload_processes_document(self, client, store, embedding_provider):
        response = upload(client)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        result = body["data"]
        assert result["success"] is True
        assert result["chunks_created"] == 1
        assert result["vectors_stored"] == 1
        assert result["entities_created"] == 2
        assert result["relations_created"] == 1
        assert embedding_provider.calls == [NOTES]

        document = store.rows("documents")[0]
        assert document["id"] == result["document_id"]
        assert document["user_id"] == "user-1"
        assert document["status"] == "processed"
        assert document["file_path"] == f"user-1/{document['id']}/notes.txt"

    def test_upload_empty_file_reports_failure(self, client, store):
        response = upload(client, content=b"   ")

        assert response.status_code == 200
        result = response.json()["data"]
        assert result["success"] is False
        assert result["error"] == "No content to process"
        assert store.rows("documents")[0]["status"] == "failed"

    def test_upload_unsupported_type(self, client, store):
        response = upload(client, name="paper.pdf", content=b"%PDF-1.7", content_type="application/pdf")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Unsupported file type: pdf"
        assert store.rows("documents") == []

    def test_requires_authentication(self, app, client):
        app.dependency_overrides.clear()

        response = client.get("/api/v1/documents/doc-1")

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_get_document(self, client):
        document_id = upload(client).json()["data"]["document_id"]

        response = client.get(f"/api/v1/documents/{document_id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == document_id
        assert data["status"] == "processed"
        assert data["chunks_count"] == 1

    def test_get_document_of_other_user(self, client, store):
        asyncio.run(create_document(store, document_id="doc-9", user_id="user-2"))

        response = client.get("/api/v1/documents/doc-9")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_upload_insert_failure_removes_stored_file(self, client, store, file_storage):
        store.fail_insert_tables.add("documents")

        response = upload(client)

        assert response.status_code == 500
        assert response.json()["code"] == "STORE_ERROR"
        assert store.rows("documents") == []
        assert file_storage.paths() == []

    def test_list_documents(self, client, store):
        asyncio.run(create_document(store, "doc-1", created_at="2024-03-01T00:00:00+00:00"))
        asyncio.run(create_document(store, "doc-2", status="processed", created_at="2024-03-02T00:00:00+00:00"))
        asyncio.run(create_document(store, "doc-9", user_id="user-2"))

        response = client.get("/api/v1/documents", params={"limit": 1})

        assert response.status_code == 200
        data = response.json()["data"]
        assert [d["id"] for d in data["documents"]] == ["doc-2"]
        assert (data["page"], data["limit"], data["total"], data["total_pages"]) == (1, 1, 2, 2)

        filtered = client.get("/api/v1/documents", params={"status": "pending"}).json()["data"]
        assert [d["id"] for d in filtered["documents"]] == ["doc-1"]

    def test_update_document_metadata(self, client, store):
        asyncio.run(create_document(store, metadata={"category": "drafts"}))

        response = client.patch(
            "/api/v1/documents/doc-1",
            json={"file_name": "report.txt", "tags": ["q1", "finance"], "category": None},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["file_name"] == "report.txt"
        assert data["metadata"] == {"tags": ["q1", "finance"]}

    def test_update_without_fields(self, client, store):
        asyncio.run(create_document(store))

        response = client.patch("/api/v1/documents/doc-1", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"

    def test_delete_document(self, client, store, file_storage):
        document_id = upload(client).json()["data"]["document_id"]
        assert len(store.rows("entities")) == 2

        response = client.delete(f"/api/v1/documents/{document_id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["document_id"] == document_id
        assert (data["chunks_deleted"], data["entities_deleted"], data["relations_deleted"]) == (1, 2, 1)
        assert data["warning"] is None
        assert store.rows("documents") == []
        assert store.rows("chunks") == []
        assert store.rows("entities") == []
        assert store.rows("relations") == []
        assert file_storage.paths() == []
        assert client.get(f"/api/v1/documents/{document_id}").status_code == 404

    def test_delete_document_of_other_user(self, client, store):
        asyncio.run(create_document(store, document_id="doc-9", user_id="user-2"))

        response = client.delete("/api/v1/documents/doc-9")

        assert response.status_code == 404
        assert len(store.rows("documents")) == 1

    def test_backfill_embeddings(self, client, store, embedding_provider):
        asyncio.run(create_document(store, status="processed"))
        asyncio.run(
            store.insert(
                "chunks",
                [{"id": "c1", "document_id": "doc-1", "user_id": "user-1", "chunk_order_index": 0, "content": "text"}],
            )
        )

        response = client.post("/api/v1/documents/doc-1/embeddings/backfill")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data == {"document_id": "doc-1", "total": 1, "succeeded": 1, "failed": 0}
        assert store.rows("chunks")[0]["content_vector"].startswith("[4.0,")


class TestEntityAPI:
    """Entity re-derivation endpoints."""

    def test_reprocess_replaces_entities(self, client, store):
        document_id = upload(client).json()["data"]["document_id"]
        assert len(store.rows("entities")) == 2

        response = client.post("/api/v1/admin/reprocess-entities", json={"document_id": document_id})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["processed"] == 1
        assert data["succeeded"] == 1
        assert data["total_entities"] == 2
        assert data["results"][0]["chunks_processed"] == 1
        assert len(store.rows("entities")) == 2
        assert len(store.rows("relations")) == 1

    def test_reprocess_without_body(self, client):
        upload(client)
        upload(client, name="more.md")

        response = client.post("/api/v1/admin/reprocess-entities")

        assert response.status_code == 200
        assert response.json()["data"]["processed"] == 2

    def test_entity_stats(self, client):
        upload(client)

        response = client.get("/api/v1/admin/reprocess-entities")

        assert response.status_code == 200
        assert response.json()["data"] == {"documents": 1, "entities": 2, "relations": 1}
