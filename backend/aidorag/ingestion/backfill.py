"""Re-embed chunks that were stored without a vector."""

from __future__ import annotations

import asyncio
from typing import Any

from aidorag.core.logging import get_logger
from aidorag.core.protocols import RelationalStore
from aidorag.ingestion.embeddings import EmbeddingGenerator
from aidorag.ingestion.models import BackfillResult
from aidorag.ingestion.vector import encode_vector
from aidorag.ingestion.writer import CHUNKS_TABLE

logger = get_logger(__name__)

UPDATE_DELAY_MS = 100


class EmbeddingBackfill:
    """Explicit repair pass for chunks whose ``content_vector`` is NULL."""

    def __init__(
        self,
        store: RelationalStore,
        generator: EmbeddingGenerator,
        update_delay_ms: int = UPDATE_DELAY_MS,
    ) -> None:
        self.store = store
        self.generator = generator
        self.update_delay = update_delay_ms / 1000

    async def run(self, document_id: str | None = None, user_id: str | None = None) -> BackfillResult:
        """Embed and store vectors for every chunk missing one.

        Args:
            document_id: Restrict the pass to one document
            user_id: Restrict the pass to one owner's chunks

        Returns:
            Counts of chunks found, repaired and still missing a vector
        """
        filters: dict[str, Any] = {"content_vector": None}
        if document_id:
            filters["document_id"] = document_id
        if user_id:
            filters["user_id"] = user_id

        chunks = await self.store.select(
            CHUNKS_TABLE,
            columns="id, document_id, content",
            filters=filters,
            order_by="chunk_order_index",
        )
        result = BackfillResult(total=len(chunks))
        if not chunks:
            logger.info("backfill_nothing_to_do", document_id=document_id)
            return result

        logger.info("backfill_started", chunks=len(chunks), document_id=document_id)
        vectors = await self.generator.generate([c["content"] for c in chunks])

        for index, (chunk, vector) in enumerate(zip(chunks, vectors, strict=True)):
            if not vector:
                result.failed += 1
                continue
            try:
                await self.store.update(
                    CHUNKS_TABLE,
                    {"content_vector": encode_vector(vector)},
                    {"id": chunk["id"]},
                )
                result.succeeded += 1
            except Exception as e:
                result.failed += 1
                logger.warning("backfill_update_failed", chunk_id=chunk["id"], error=str(e))

            if index < len(chunks) - 1 and self.update_delay > 0:
                await asyncio.sleep(self.update_delay)

        logger.info(
            "backfill_completed",
            total=result.total,
            succeeded=result.succeeded,
            failed=result.failed,
        )
        return result
