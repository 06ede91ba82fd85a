"""Two-phase chunk persistence.

Phase A inserts every chunk row without its vector in one batched call, so
a document either has all of its chunks or none. Phase B writes vectors one
chunk at a time; a failed vector update leaves that chunk without a vector
and never affects its siblings.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from aidorag.core.exceptions import ChunkInsertError, IncompleteEmbeddingError
from aidorag.core.logging import get_logger
from aidorag.core.protocols import RelationalStore
from aidorag.ingestion.models import ChunkRecord, ChunkWriteResult, DocumentStatus, EmbeddingPolicy

logger = get_logger(__name__)

DOCUMENTS_TABLE = "documents"
CHUNKS_TABLE = "chunks"


async def update_document_status(
    store: RelationalStore,
    document_id: str,
    status: DocumentStatus,
    chunks_count: int | None = None,
    error_message: str | None = None,
) -> None:
    """Set a document's status, stamping updated_at."""
    values: dict[str, Any] = {
        "status": status.value,
        "updated_at": datetime.now(UTC).isoformat(),
        "error_message": error_message,
    }
    if chunks_count is not None:
        values["chunks_count"] = chunks_count

    await store.update(DOCUMENTS_TABLE, values, {"id": document_id})
    logger.info(
        "document_status_updated",
        document_id=document_id,
        status=status.value,
        chunks_count=chunks_count,
    )


class ChunkStoreWriter:
    """Persist a document's chunks and move it out of ``processing``."""

    def __init__(
        self,
        store: RelationalStore,
        policy: EmbeddingPolicy | str = EmbeddingPolicy.BEST_EFFORT,
        batch_size: int = 0,
    ) -> None:
        """Initialize the writer.

        Args:
            store: Relational store holding the documents and chunks tables
            policy: ``best_effort`` marks the document processed whatever the
                vector count; ``strict`` rejects documents with missing vectors
            batch_size: Rows per insert call in Phase A; 0 for a single call
        """
        self.store = store
        self.policy = EmbeddingPolicy(policy)
        self.batch_size = batch_size

    async def write(self, document_id: str, chunks: list[ChunkRecord]) -> ChunkWriteResult:
        """Write chunks for a document.

        Raises:
            ChunkInsertError: Phase A failed; no chunk rows remain.
            IncompleteEmbeddingError: Strict policy and a chunk has no vector.
        """
        await self._insert_rows(document_id, chunks)
        result = await self._store_vectors(document_id, chunks)

        logger.info(
            "chunks_written",
            document_id=document_id,
            chunks_total=result.chunks_total,
            vectors_stored=result.vectors_stored,
            summary=result.summary,
        )

        if self.policy is EmbeddingPolicy.STRICT and not result.complete:
            await self.store.delete(CHUNKS_TABLE, {"document_id": document_id})
            error = IncompleteEmbeddingError(document_id, result.vectors_stored, result.chunks_total)
            await update_document_status(
                self.store,
                document_id,
                DocumentStatus.FAILED,
                chunks_count=0,
                error_message=error.message,
            )
            logger.warning("strict_embedding_policy_rejected", document_id=document_id, summary=result.summary)
            raise error

        await update_document_status(
            self.store,
            document_id,
            DocumentStatus.PROCESSED,
            chunks_count=result.chunks_total,
        )
        return result

    async def _insert_rows(self, document_id: str, chunks: list[ChunkRecord]) -> None:
        rows = [chunk.to_row() for chunk in chunks]
        if not rows:
            return

        size = self.batch_size or len(rows)
        try:
            for start in range(0, len(rows), size):
                await self.store.insert(CHUNKS_TABLE, rows[start : start + size])
        except Exception as e:
            logger.error("chunk_insert_failed", document_id=document_id, chunks=len(rows), error=str(e))
            await self._remove_partial(document_id)
            raise ChunkInsertError(f"Failed to insert chunks: {e}", document_id) from e

    async def _remove_partial(self, document_id: str) -> None:
        try:
            removed = await self.store.delete(CHUNKS_TABLE, {"document_id": document_id})
        except Exception as e:
            logger.error("chunk_rollback_failed", document_id=document_id, error=str(e))
            return
        if removed:
            logger.warning("chunk_rollback", document_id=document_id, removed=removed)

    async def _store_vectors(self, document_id: str, chunks: list[ChunkRecord]) -> ChunkWriteResult:
        stored = 0
        failures = 0
        for chunk in chunks:
            if chunk.content_vector is None:
                continue
            try:
                await self.store.update(
                    CHUNKS_TABLE,
                    {"content_vector": chunk.content_vector},
                    {"id": chunk.id},
                )
                stored += 1
            except Exception as e:
                failures += 1
                logger.warning(
                    "chunk_vector_update_failed",
                    document_id=document_id,
                    chunk_id=chunk.id,
                    chunk_order_index=chunk.chunk_order_index,
                    error=str(e),
                )

        return ChunkWriteResult(
            document_id=document_id,
            chunks_total=len(chunks),
            vectors_stored=stored,
            vector_failures=failures,
        )
