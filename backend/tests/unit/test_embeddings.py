"""Tests for the embedding generator."""

import asyncio

import pytest

from aidorag.ingestion.embeddings import EmbeddingGenerator
from tests.conftest import DIMENSION, MockEmbeddingProvider


class TestEmbeddingGenerator:
    """Test cases for EmbeddingGenerator."""

    @pytest.mark.asyncio
    async def test_one_call_per_text_in_order(self, embedding_provider, embedding_generator):
        texts = ["a", "bb", "ccc"]

        vectors = await embedding_generator.generate(texts)

        assert embedding_provider.calls == texts
        assert [v[0] for v in vectors] == [1.0, 2.0, 3.0]
        assert all(len(v) == DIMENSION for v in vectors)

    @pytest.mark.asyncio
    async def test_empty_input(self, embedding_provider, embedding_generator):
        assert await embedding_generator.generate([]) == []
        assert embedding_provider.calls == []

    @pytest.mark.asyncio
    async def test_failed_item_is_empty_at_its_index(self):
        provider = MockEmbeddingProvider(fail_on={"bb"})
        generator = EmbeddingGenerator(provider, delay_ms=0)

        batch = await generator.generate_with_report(["a", "bb", "ccc", "dddd"])

        assert len(batch.vectors) == 4
        assert batch.vectors[1] == []
        assert [batch.vectors[i][0] for i in (0, 2, 3)] == [1.0, 3.0, 4.0]
        assert batch.failed_indices == [1]
        assert batch.succeeded == 3
        assert batch.failed == 1

    @pytest.mark.asyncio
    async def test_wrong_dimension_counts_as_failure(self):
        provider = MockEmbeddingProvider(dimension=3)
        generator = EmbeddingGenerator(provider, dimension=DIMENSION, delay_ms=0)

        vectors = await generator.generate(["a", "b"])

        assert vectors == [[], []]

    @pytest.mark.asyncio
    async def test_malformed_provider_result_counts_as_failure(self):
        class PartlyBrokenProvider(MockEmbeddingProvider):
            async def embed(self, text: str) -> list[float]:
                if text == "bb":
                    self.calls.append(text)
                    return None
                return await super().embed(text)

        provider = PartlyBrokenProvider()
        generator = EmbeddingGenerator(provider, delay_ms=0)

        batch = await generator.generate_with_report(["a", "bb", "ccc"])

        assert provider.calls == ["a", "bb", "ccc"]
        assert batch.vectors[1] == []
        assert batch.failed_indices == [1]
        assert batch.succeeded == 2

    @pytest.mark.asyncio
    async def test_delay_between_calls(self, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        generator = EmbeddingGenerator(MockEmbeddingProvider(), delay_ms=60)

        await generator.generate(["a", "b", "c"])

        assert sleeps == [0.06, 0.06]

    @pytest.mark.asyncio
    async def test_worker_pool_preserves_index_mapping(self):
        """Out-of-order completion still maps each vector to its text."""

        class SlowFirstProvider(MockEmbeddingProvider):
            async def embed(self, text):
                # Longer texts finish first
                await asyncio.sleep(0.01 / len(text))
                return await super().embed(text)

        provider = SlowFirstProvider(fail_on={"ccc"})
        generator = EmbeddingGenerator(provider, delay_ms=0, concurrency=4)
        texts = ["a", "bb", "ccc", "dddd", "eeeee", "ffffff"]

        vectors = await generator.generate(texts)

        assert len(vectors) == len(texts)
        assert vectors[2] == []
        for index in (0, 1, 3, 4, 5):
            assert vectors[index][0] == float(len(texts[index]))
        assert sorted(provider.calls) == sorted(texts)

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            EmbeddingGenerator(MockEmbeddingProvider(), concurrency=0)
