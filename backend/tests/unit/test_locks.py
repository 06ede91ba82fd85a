"""Tests for per-document locking."""

import asyncio

import pytest

from aidorag.core.locks import DocumentLockManager
from aidorag.ingestion.entities import EntityExtractor, EntityReprocessor
from tests.conftest import MockGenerationProvider, create_document


class TestDocumentLockManager:
    """Test cases for DocumentLockManager."""

    @pytest.mark.asyncio
    async def test_same_document_serializes(self):
        locks = DocumentLockManager()
        events = []

        async def work(name: str):
            async with locks.hold("doc-1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(work("a"), work("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_documents_do_not_block(self):
        locks = DocumentLockManager()
        release = asyncio.Event()

        async def hold_first():
            async with locks.hold("doc-1"):
                await release.wait()

        holder = asyncio.create_task(hold_first())
        await asyncio.sleep(0)

        async with locks.hold("doc-2"):
            assert locks.is_locked("doc-1")
            assert locks.is_locked("doc-2")

        release.set()
        await holder

    @pytest.mark.asyncio
    async def test_entries_released_after_use(self):
        locks = DocumentLockManager()

        async with locks.hold("doc-1"):
            assert locks.active_keys == 1

        assert locks.active_keys == 0
        assert not locks.is_locked("doc-1")

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        locks = DocumentLockManager()

        with pytest.raises(RuntimeError):
            async with locks.hold("doc-1"):
                raise RuntimeError("boom")

        assert locks.active_keys == 0
        async with locks.hold("doc-1"):
            pass

    @pytest.mark.asyncio
    async def test_reprocess_waits_for_document_lock(self, store, locks):
        await create_document(store, document_id="doc-a", status="processed")
        reprocessor = EntityReprocessor(store, EntityExtractor(MockGenerationProvider(), store), locks)

        async with locks.hold("doc-a"):
            task = asyncio.create_task(reprocessor.reprocess("user-1"))
            await asyncio.sleep(0.01)
            assert not task.done()

        report = await task
        assert report.processed == 1
