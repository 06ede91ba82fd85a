"""Per-document mutual exclusion."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from aidorag.core.logging import get_logger

logger = get_logger(__name__)


class DocumentLockManager:
    """Keyed registry of asyncio locks, one per document id.

    Ingestion and entity re-derivation of the same document serialize on
    the same lock. Locks only cover this process; entries are dropped once
    no task holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refcounts: dict[str, int] = {}

    def is_locked(self, document_id: str) -> bool:
        """Whether a task currently holds the document's lock."""
        lock = self._locks.get(document_id)
        return lock is not None and lock.locked()

    @property
    def active_keys(self) -> int:
        """Number of documents with a held or awaited lock."""
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, document_id: str) -> AsyncIterator[None]:
        """Hold the lock for a document for the duration of the block."""
        lock = self._locks.setdefault(document_id, asyncio.Lock())
        self._refcounts[document_id] = self._refcounts.get(document_id, 0) + 1

        if lock.locked():
            logger.debug("document_lock_wait", document_id=document_id)

        try:
            async with lock:
                yield
        finally:
            self._refcounts[document_id] -= 1
            if self._refcounts[document_id] == 0:
                del self._refcounts[document_id]
                del self._locks[document_id]
