"""Document ingestion: chunking, embedding, storage and entity extraction."""

from aidorag.ingestion.backfill import EmbeddingBackfill
from aidorag.ingestion.chunker import TextChunker, estimate_tokens
from aidorag.ingestion.documents import DocumentManager, clear_document_chunks
from aidorag.ingestion.embeddings import EmbeddingGenerator
from aidorag.ingestion.entities import EntityExtractor, EntityReprocessor
from aidorag.ingestion.models import (
    ChunkRecord,
    ChunkWriteResult,
    DocumentStatus,
    EmbeddingPolicy,
    ProcessingResult,
    ReprocessReport,
    TextChunk,
)
from aidorag.ingestion.pipeline import IngestionPipeline
from aidorag.ingestion.vector import decode_vector, encode_vector
from aidorag.ingestion.writer import ChunkStoreWriter, update_document_status

__all__ = [
    "ChunkRecord",
    "ChunkStoreWriter",
    "ChunkWriteResult",
    "DocumentManager",
    "DocumentStatus",
    "EmbeddingBackfill",
    "EmbeddingGenerator",
    "EmbeddingPolicy",
    "EntityExtractor",
    "EntityReprocessor",
    "IngestionPipeline",
    "ProcessingResult",
    "ReprocessReport",
    "TextChunk",
    "TextChunker",
    "clear_document_chunks",
    "decode_vector",
    "encode_vector",
    "estimate_tokens",
    "update_document_status",
]
