"""Document management: listing, metadata edits and deletion."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from aidorag.core.exceptions import DocumentNotFoundError, InvalidRequestError
from aidorag.core.locks import DocumentLockManager
from aidorag.core.logging import document_context, get_logger
from aidorag.core.protocols import FileStorage, RelationalStore
from aidorag.ingestion.entities import ENTITIES_TABLE, RELATIONS_TABLE, delete_derived
from aidorag.ingestion.models import ChunkCleanup, DocumentDeleteResult, DocumentPage
from aidorag.ingestion.writer import CHUNKS_TABLE, DOCUMENTS_TABLE

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

UPDATABLE_FIELDS = ("file_name", "description", "tags", "category", "custom_metadata")


async def clear_document_chunks(
    store: RelationalStore,
    document_id: str,
    user_id: str | None = None,
) -> ChunkCleanup:
    """Delete a document's chunks and the entities and relations sourced from them."""
    chunks = await store.select(CHUNKS_TABLE, columns="id", filters={"document_id": document_id})
    if not chunks:
        return ChunkCleanup()

    chunk_ids = {c["id"] for c in chunks}
    # Relations reference entities, so they go first
    relations = await delete_derived(store, RELATIONS_TABLE, chunk_ids, user_id)
    entities = await delete_derived(store, ENTITIES_TABLE, chunk_ids, user_id)
    removed = await store.delete(CHUNKS_TABLE, {"document_id": document_id})

    logger.info(
        "document_chunks_cleared",
        document_id=document_id,
        chunks=removed,
        entities=entities,
        relations=relations,
    )
    return ChunkCleanup(chunks=removed, entities=entities, relations=relations)


def merge_metadata(existing: dict[str, Any] | None, changes: dict[str, Any]) -> dict[str, Any]:
    """Apply metadata edits; empty values and None remove keys."""
    metadata = dict(existing or {})

    for key in ("description", "category"):
        if key in changes:
            value = changes[key]
            if value in (None, ""):
                metadata.pop(key, None)
            else:
                metadata[key] = value

    if "tags" in changes:
        tags = changes["tags"]
        if tags is None or tags == []:
            metadata.pop("tags", None)
        else:
            metadata["tags"] = list(tags) if isinstance(tags, list | tuple) else [tags]

    for key, value in (changes.get("custom_metadata") or {}).items():
        if value is None:
            metadata.pop(key, None)
        else:
            metadata[key] = value

    return metadata


class DocumentManager:
    """Owner-scoped access to document rows."""

    def __init__(
        self,
        store: RelationalStore,
        file_storage: FileStorage,
        locks: DocumentLockManager,
    ) -> None:
        self.store = store
        self.file_storage = file_storage
        self.locks = locks

    async def get_document(self, user_id: str, document_id: str) -> dict[str, Any]:
        """Get a document owned by the user.

        Raises:
            DocumentNotFoundError: If it does not exist or belongs to someone else
        """
        rows = await self.store.select(DOCUMENTS_TABLE, filters={"id": document_id, "user_id": user_id})
        if not rows:
            raise DocumentNotFoundError(document_id)
        return rows[0]

    async def list_documents(
        self,
        user_id: str,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        status: str | None = None,
        workspace: str | None = None,
    ) -> DocumentPage:
        """Newest-first page of the user's documents."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        filters: dict[str, Any] = {"user_id": user_id}
        if status:
            filters["status"] = status
        if workspace:
            filters["workspace"] = workspace

        documents = await self.store.select(
            DOCUMENTS_TABLE,
            filters=filters,
            order_by="-created_at",
            limit=limit,
            offset=(page - 1) * limit,
        )
        total = await self.store.count(DOCUMENTS_TABLE, filters)
        return DocumentPage(documents=documents, page=page, limit=limit, total=total)

    async def update_document(self, user_id: str, document_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Rename a document or edit its metadata.

        Args:
            user_id: Owner of the document
            document_id: Document to update
            changes: Any of ``file_name``, ``description``, ``tags``,
                ``category`` and ``custom_metadata``; only present keys apply

        Raises:
            InvalidRequestError: If no updatable field is given
            DocumentNotFoundError: If the user does not own the document
        """
        file_name = (changes.get("file_name") or "").strip()
        metadata_changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and k != "file_name"}
        if not file_name and not metadata_changes:
            raise InvalidRequestError(
                "At least one field to update is required "
                "(file_name, description, tags, category or custom_metadata)"
            )

        document = await self.get_document(user_id, document_id)

        values: dict[str, Any] = {"updated_at": datetime.now(UTC).isoformat()}
        if file_name:
            values["file_name"] = file_name
        if metadata_changes:
            values["metadata"] = merge_metadata(document.get("metadata"), metadata_changes)

        updated = await self.store.update(DOCUMENTS_TABLE, values, {"id": document_id, "user_id": user_id})
        logger.info("document_updated", document_id=document_id, fields=sorted(values))
        return updated[0] if updated else {**document, **values}

    async def delete_document(self, user_id: str, document_id: str) -> DocumentDeleteResult:
        """Delete a document with its chunks, derived graph rows and stored file.

        The stored file is removed last; a failure there is reported as a
        warning because the document itself is already gone.
        """
        async with self.locks.hold(document_id):
            with document_context(document_id):
                document = await self.get_document(user_id, document_id)
                cleanup = await clear_document_chunks(self.store, document_id, user_id)
                await self.store.delete(DOCUMENTS_TABLE, {"id": document_id, "user_id": user_id})

                result = DocumentDeleteResult(
                    document_id=document_id,
                    chunks_deleted=cleanup.chunks,
                    entities_deleted=cleanup.entities,
                    relations_deleted=cleanup.relations,
                )

                file_path = document.get("file_path")
                if file_path:
                    try:
                        await self.file_storage.delete(file_path)
                    except Exception as e:
                        logger.warning("document_file_cleanup_failed", file_path=file_path, error=str(e))
                        result.warning = "Document deleted but file cleanup failed; the file may remain in storage"

                logger.info(
                    "document_deleted",
                    chunks=result.chunks_deleted,
                    entities=result.entities_deleted,
                    relations=result.relations_deleted,
                )
                return result
