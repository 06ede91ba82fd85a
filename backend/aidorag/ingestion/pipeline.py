"""Document ingestion pipeline.

Moves a document through ``pending -> processing -> processed | failed``:
chunk the text, embed every chunk, encode the vectors and hand the rows to
the two-phase writer. Entity extraction runs afterwards and never fails the
document.
"""

from __future__ import annotations

import uuid
from pathlib import PurePosixPath
from typing import Any

from aidorag.core.exceptions import ChunkInsertError, DocumentNotFoundError, IncompleteEmbeddingError
from aidorag.core.locks import DocumentLockManager
from aidorag.core.logging import document_context, get_logger
from aidorag.core.protocols import FileStorage, RelationalStore
from aidorag.ingestion.chunker import TextChunker
from aidorag.ingestion.documents import clear_document_chunks
from aidorag.ingestion.embeddings import EmbeddingGenerator
from aidorag.ingestion.entities import EntityExtractor
from aidorag.ingestion.models import ChunkRecord, DocumentStatus, ProcessingResult, TextChunk
from aidorag.ingestion.vector import encode_vector
from aidorag.ingestion.writer import CHUNKS_TABLE, DOCUMENTS_TABLE, ChunkStoreWriter, update_document_status

logger = get_logger(__name__)

EMPTY_CONTENT_ERROR = "No content to process"

_MIME_TYPES = {
    "text/plain": "txt",
    "text/markdown": "md",
    "text/x-markdown": "md",
}


def resolve_file_type(document: dict[str, Any]) -> str:
    """Short file type of a document row, from its type column or name."""
    file_type = (document.get("file_type") or "").lower().strip()
    if file_type in _MIME_TYPES:
        return _MIME_TYPES[file_type]
    if file_type:
        return file_type.lstrip(".")
    return PurePosixPath(document.get("file_name") or "").suffix.lower().lstrip(".")


class IngestionPipeline:
    """Process document text into stored, embedded chunks."""

    def __init__(
        self,
        store: RelationalStore,
        file_storage: FileStorage,
        chunker: TextChunker,
        embedding_generator: EmbeddingGenerator,
        writer: ChunkStoreWriter,
        locks: DocumentLockManager,
        entity_extractor: EntityExtractor | None = None,
        delete_document_on_insert_failure: bool = True,
        default_workspace: str = "default",
        supported_file_types: list[str] | None = None,
    ) -> None:
        self.store = store
        self.file_storage = file_storage
        self.chunker = chunker
        self.embedding_generator = embedding_generator
        self.writer = writer
        self.locks = locks
        self.entity_extractor = entity_extractor
        self.delete_document_on_insert_failure = delete_document_on_insert_failure
        self.default_workspace = default_workspace
        self.supported_file_types = supported_file_types or ["txt", "md"]

    async def process_text(
        self,
        document_id: str,
        text: str,
        *,
        workspace: str | None = None,
        user_id: str | None = None,
    ) -> ProcessingResult:
        """Chunk, embed and store text for an existing document row.

        Args:
            document_id: Document to attach chunks to
            text: Full document text
            workspace: Workspace for chunk rows; read from the document when omitted
            user_id: Owner for chunk rows; read from the document when omitted

        Returns:
            Outcome of the run. Empty text and insert failures are reported
            here rather than raised.
        """
        async with self.locks.hold(document_id):
            if workspace is None or user_id is None:
                document = await self._get_document(document_id)
                workspace = workspace if workspace is not None else document.get("workspace")
                user_id = user_id if user_id is not None else document.get("user_id")
            with document_context(document_id):
                return await self._run(document_id, text, workspace or self.default_workspace, user_id)

    async def process_document(self, document_id: str) -> ProcessingResult:
        """Download a document's uploaded file and process its text.

        Raises:
            DocumentNotFoundError: If the document row does not exist.
        """
        async with self.locks.hold(document_id):
            document = await self._get_document(document_id)
            file_type = resolve_file_type(document)

            if file_type not in self.supported_file_types:
                return await self._fail(document_id, f"Unsupported file type: {file_type or 'unknown'}")

            try:
                raw = await self.file_storage.download(document["file_path"])
            except Exception as e:
                logger.error("document_download_failed", document_id=document_id, error=str(e))
                return await self._fail(document_id, f"Failed to download file: {e}")

            text = raw.decode("utf-8", errors="replace")
            with document_context(document_id, file_type=file_type):
                return await self._run(
                    document_id,
                    text,
                    document.get("workspace") or self.default_workspace,
                    document.get("user_id"),
                )

    async def _get_document(self, document_id: str) -> dict[str, Any]:
        rows = await self.store.select(DOCUMENTS_TABLE, filters={"id": document_id})
        if not rows:
            raise DocumentNotFoundError(document_id)
        return rows[0]

    async def _run(
        self,
        document_id: str,
        text: str,
        workspace: str,
        user_id: str | None,
    ) -> ProcessingResult:
        logger.info("document_processing_started", document_id=document_id, chars=len(text))
        await update_document_status(self.store, document_id, DocumentStatus.PROCESSING)

        # A rerun replaces the previous chunk set instead of appending to it
        try:
            await clear_document_chunks(self.store, document_id, user_id)
        except Exception as e:
            logger.error("document_previous_chunks_clear_failed", document_id=document_id, error=str(e))
            return await self._fail(document_id, f"Failed to clear previous chunks: {e}")

        chunks = self.chunker.chunk(text)
        if not chunks:
            logger.warning("document_empty", document_id=document_id)
            return await self._fail(document_id, EMPTY_CONTENT_ERROR)

        records = self._build_records(document_id, chunks, workspace, user_id)

        try:
            batch = await self.embedding_generator.generate_with_report([r.content for r in records])
            for record, vector in zip(records, batch.vectors, strict=True):
                record.content_vector = self._encode(record, vector)

            written = await self.writer.write(document_id, records)
        except ChunkInsertError as e:
            return await self._handle_insert_failure(document_id, e)
        except IncompleteEmbeddingError as e:
            return ProcessingResult(
                document_id=document_id,
                success=False,
                chunks_created=0,
                vectors_stored=e.vectors_stored,
                error=e.message,
            )
        except Exception as e:
            logger.error("document_processing_failed", document_id=document_id, error=str(e))
            await self._discard_chunks(document_id)
            return await self._fail(document_id, str(e))

        result = ProcessingResult(
            document_id=document_id,
            success=True,
            chunks_created=written.chunks_total,
            vectors_stored=written.vectors_stored,
        )

        if self.entity_extractor is not None:
            await self._extract_entities(result, records, workspace, user_id)

        logger.info(
            "document_processing_completed",
            document_id=document_id,
            chunks_created=result.chunks_created,
            vectors_stored=result.vectors_stored,
            entities_created=result.entities_created,
            relations_created=result.relations_created,
        )
        return result

    @staticmethod
    def _build_records(
        document_id: str,
        chunks: list[TextChunk],
        workspace: str,
        user_id: str | None,
    ) -> list[ChunkRecord]:
        return [
            ChunkRecord(
                id=str(uuid.uuid4()),
                document_id=document_id,
                chunk_order_index=index,
                content=chunk.content,
                tokens=chunk.token_count,
                user_id=user_id,
                workspace=workspace,
                metadata={"chunk_index": index, "total_chunks": len(chunks)},
            )
            for index, chunk in enumerate(chunks)
        ]

    @staticmethod
    def _encode(record: ChunkRecord, vector: list[float]) -> str | None:
        if not vector:
            return None
        try:
            return encode_vector(vector)
        except ValueError as e:
            logger.warning("embedding_not_encodable", chunk_order_index=record.chunk_order_index, error=str(e))
            return None

    async def _extract_entities(
        self,
        result: ProcessingResult,
        records: list[ChunkRecord],
        workspace: str,
        user_id: str | None,
    ) -> None:
        try:
            counts = await self.entity_extractor.process_chunks(
                result.document_id,
                [{"id": r.id, "content": r.content} for r in records],
                workspace=workspace,
                user_id=user_id,
            )
        except Exception as e:
            logger.warning("entity_extraction_failed", document_id=result.document_id, error=str(e))
            return
        result.entities_created = counts.entities_created
        result.relations_created = counts.relations_created

    async def _handle_insert_failure(self, document_id: str, error: ChunkInsertError) -> ProcessingResult:
        if self.delete_document_on_insert_failure:
            try:
                await self.store.delete(DOCUMENTS_TABLE, {"id": document_id})
            except Exception as e:
                logger.error("document_delete_after_insert_failure_failed", document_id=document_id, error=str(e))
                return await self._fail(document_id, error.message)
            logger.warning("document_deleted_after_insert_failure", document_id=document_id)
            return ProcessingResult(document_id=document_id, success=False, error=error.message)
        return await self._fail(document_id, error.message)

    async def _discard_chunks(self, document_id: str) -> None:
        try:
            removed = await self.store.delete(CHUNKS_TABLE, {"document_id": document_id})
        except Exception as e:
            logger.error("chunk_discard_failed", document_id=document_id, error=str(e))
            return
        if removed:
            logger.warning("chunks_discarded", document_id=document_id, removed=removed)

    async def _fail(self, document_id: str, message: str) -> ProcessingResult:
        await update_document_status(
            self.store,
            document_id,
            DocumentStatus.FAILED,
            chunks_count=0,
            error_message=message,
        )
        return ProcessingResult(document_id=document_id, success=False, error=message)
