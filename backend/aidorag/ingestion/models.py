"""Ingestion data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DocumentStatus(str, Enum):
    """Document processing lifecycle."""

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class EmbeddingPolicy(str, Enum):
    """What to do with a document whose chunks are not all embedded."""

    BEST_EFFORT = "best_effort"
    STRICT = "strict"


@dataclass
class TextChunk:
    """A contiguous slice of document text."""

    content: str
    token_count: int


@dataclass
class ChunkRecord:
    """A chunk row ready to be written.

    ``content_vector`` holds the encoded vector text, or None when the
    embedding for this chunk failed.
    """

    id: str
    document_id: str
    chunk_order_index: int
    content: str
    tokens: int
    user_id: str | None = None
    workspace: str = "default"
    chunk_type: str = "text"
    metadata: dict[str, Any] = field(default_factory=dict)
    content_vector: str | None = None

    def to_row(self) -> dict[str, Any]:
        """Row for the chunks table, without the vector column."""
        return {
            "id": self.id,
            "document_id": self.document_id,
            "user_id": self.user_id,
            "workspace": self.workspace,
            "chunk_order_index": self.chunk_order_index,
            "content": self.content,
            "tokens": self.tokens,
            "chunk_type": self.chunk_type,
            "metadata": self.metadata,
        }


@dataclass
class EmbeddingBatch:
    """Vectors for a batch of texts plus a success tally."""

    vectors: list[list[float]]
    failed_indices: list[int] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.vectors) - len(self.failed_indices)

    @property
    def failed(self) -> int:
        return len(self.failed_indices)


@dataclass
class ChunkWriteResult:
    """Outcome of a two-phase chunk write."""

    document_id: str
    chunks_total: int
    vectors_stored: int
    vector_failures: int = 0

    @property
    def complete(self) -> bool:
        return self.vectors_stored == self.chunks_total

    @property
    def summary(self) -> str:
        return f"{self.vectors_stored}/{self.chunks_total} chunks have embeddings"


@dataclass
class ProcessingResult:
    """Outcome of processing one document."""

    document_id: str
    success: bool
    chunks_created: int = 0
    vectors_stored: int = 0
    entities_created: int = 0
    relations_created: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_id": self.document_id,
            "success": self.success,
            "chunks_created": self.chunks_created,
            "vectors_stored": self.vectors_stored,
            "entities_created": self.entities_created,
            "relations_created": self.relations_created,
            "error": self.error,
        }


@dataclass
class BackfillResult:
    """Outcome of an embedding backfill pass."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass
class ExtractedEntity:
    """Entity as returned by the generation model."""

    name: str
    type: str
    description: str = ""


@dataclass
class ExtractedRelation:
    """Relation as returned by the generation model, keyed by entity names."""

    source: str
    target: str
    type: str
    description: str = ""


@dataclass
class ExtractionResult:
    """Entities and relations extracted from one piece of text."""

    entities: list[ExtractedEntity] = field(default_factory=list)
    relations: list[ExtractedRelation] = field(default_factory=list)


@dataclass
class ExtractionCounts:
    """Rows written by one extraction run."""

    entities_created: int = 0
    relations_created: int = 0


@dataclass
class DocumentReprocessResult:
    """Per-document outcome of entity re-derivation."""

    document_id: str
    file_name: str | None
    success: bool
    chunks_processed: int = 0
    entities: int = 0
    relations: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "document_id": self.document_id,
            "file_name": self.file_name,
            "success": self.success,
        }
        if self.success:
            result["chunks_processed"] = self.chunks_processed
            result["entities"] = self.entities
            result["relations"] = self.relations
        else:
            result["error"] = self.error
        return result


@dataclass
class ReprocessReport:
    """Aggregate outcome of entity re-derivation across documents."""

    results: list[DocumentReprocessResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.processed - self.succeeded

    @property
    def total_entities(self) -> int:
        return sum(r.entities for r in self.results)

    @property
    def total_relations(self) -> int:
        return sum(r.relations for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "total_entities": self.total_entities,
            "total_relations": self.total_relations,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class ChunkCleanup:
    """Rows removed when a document's chunks are cleared."""

    chunks: int = 0
    entities: int = 0
    relations: int = 0


@dataclass
class DocumentPage:
    """One page of a user's documents."""

    documents: list[dict[str, Any]]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


@dataclass
class DocumentDeleteResult:
    """Outcome of deleting a document."""

    document_id: str
    chunks_deleted: int = 0
    entities_deleted: int = 0
    relations_deleted: int = 0
    warning: str | None = None
