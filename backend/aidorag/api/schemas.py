"""Request and response schemas for the API."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope."""

    success: bool = Field(default=True, description="Always true for successful calls")
    data: T


# --- Request Models ---


class DocumentUpdateRequest(BaseModel):
    """Rename a document or edit its metadata.

    Only fields present in the request are applied; null or empty values
    remove the metadata key.
    """

    file_name: str | None = None
    description: str | None = None
    tags: list[str] | str | None = None
    category: str | None = None
    custom_metadata: dict[str, Any] | None = None


class ReprocessRequest(BaseModel):
    """Entity re-derivation request."""

    document_id: str | None = Field(default=None, description="Limit to one document; all processed documents if omitted")


# --- Response Models ---


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    storage_backend: str = Field(..., description="Active relational store backend")
    embedding_model: str = Field(..., description="Gemini embedding model")
    embedding_policy: str = Field(..., description="Incomplete-embedding policy")


class DocumentInfo(BaseModel):
    """Document status for polling."""

    id: str
    file_name: str | None = None
    file_type: str | None = None
    workspace: str | None = None
    file_size: int | None = None
    status: str
    chunks_count: int | None = None
    error_message: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: str | None = None
    updated_at: str | None = None


class DocumentListResponse(BaseModel):
    """Page of the caller's documents."""

    documents: list[DocumentInfo]
    page: int
    limit: int
    total: int
    total_pages: int


class DocumentDeleteResponse(BaseModel):
    """Outcome of deleting a document."""

    document_id: str
    chunks_deleted: int
    entities_deleted: int
    relations_deleted: int
    warning: str | None = None


class ProcessingResultResponse(BaseModel):
    """Outcome of processing one document."""

    document_id: str
    success: bool
    chunks_created: int = 0
    vectors_stored: int = 0
    entities_created: int = 0
    relations_created: int = 0
    error: str | None = None


class BackfillResponse(BaseModel):
    """Outcome of an embedding backfill pass."""

    document_id: str
    total: int
    succeeded: int
    failed: int


class DocumentReprocessInfo(BaseModel):
    """Per-document entity re-derivation outcome."""

    document_id: str
    file_name: str | None = None
    success: bool
    chunks_processed: int | None = None
    entities: int | None = None
    relations: int | None = None
    error: str | None = None


class ReprocessResponse(BaseModel):
    """Entity re-derivation report."""

    processed: int
    succeeded: int
    failed: int
    total_entities: int
    total_relations: int
    results: list[DocumentReprocessInfo] = Field(default_factory=list)


class EntityStatsResponse(BaseModel):
    """Entity extraction status for the caller's documents."""

    documents: int = Field(..., description="Processed documents")
    entities: int
    relations: int
