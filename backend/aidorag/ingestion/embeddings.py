"""Embedding generation for chunk batches.

Each text is embedded with one provider call. A failing item yields an
empty vector at its index and never aborts the batch; a fixed delay
between calls is the only backpressure against provider rate limits.
"""

from __future__ import annotations

import asyncio

from aidorag.core.logging import get_logger
from aidorag.core.protocols import EmbeddingProvider
from aidorag.ingestion.models import EmbeddingBatch

logger = get_logger(__name__)

DEFAULT_DIMENSION = 768
DEFAULT_DELAY_MS = 60


class EmbeddingGenerator:
    """Embed a list of texts, preserving input order."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        dimension: int = DEFAULT_DIMENSION,
        delay_ms: int = DEFAULT_DELAY_MS,
        concurrency: int = 1,
    ) -> None:
        """Initialize the generator.

        Args:
            provider: Single-text embedding provider
            dimension: Expected vector length; other lengths count as failures
            delay_ms: Pause between provider calls
            concurrency: Number of workers; 1 embeds sequentially
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.provider = provider
        self.dimension = dimension
        self.delay = delay_ms / 1000
        self.concurrency = concurrency

    async def generate(self, texts: list[str]) -> list[list[float]]:
        """Embed texts; failed items are empty lists at their index."""
        batch = await self.generate_with_report(texts)
        return batch.vectors

    async def generate_with_report(self, texts: list[str]) -> EmbeddingBatch:
        """Embed texts and report which indices failed."""
        vectors: list[list[float]] = [[] for _ in texts]
        if not texts:
            return EmbeddingBatch(vectors=vectors)

        if self.concurrency == 1:
            for index, text in enumerate(texts):
                vectors[index] = await self._embed_one(index, text)
                if index < len(texts) - 1:
                    await self._pause()
        else:
            await self._run_workers(texts, vectors)

        batch = EmbeddingBatch(
            vectors=vectors,
            failed_indices=[i for i, v in enumerate(vectors) if not v],
        )
        logger.info(
            "embeddings_generated",
            total=len(texts),
            succeeded=batch.succeeded,
            failed=batch.failed,
        )
        return batch

    async def _run_workers(self, texts: list[str], vectors: list[list[float]]) -> None:
        queue: asyncio.Queue[int] = asyncio.Queue()
        for index in range(len(texts)):
            queue.put_nowait(index)

        async def worker() -> None:
            while True:
                try:
                    index = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                vectors[index] = await self._embed_one(index, texts[index])
                if not queue.empty():
                    await self._pause()

        workers = min(self.concurrency, len(texts))
        await asyncio.gather(*(worker() for _ in range(workers)))

    async def _embed_one(self, index: int, text: str) -> list[float]:
        try:
            vector = list(await self.provider.embed(text))
        except Exception as e:
            logger.warning("embedding_item_failed", index=index, error=str(e))
            return []

        if len(vector) != self.dimension:
            logger.warning(
                "embedding_dimension_mismatch",
                index=index,
                expected=self.dimension,
                actual=len(vector),
            )
            return []
        return vector

    async def _pause(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
