"""API routes for document ingestion and entity re-derivation."""

import uuid
from dataclasses import asdict
from pathlib import PurePosixPath

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from aidorag.api.schemas import (
    ApiResponse,
    BackfillResponse,
    DocumentDeleteResponse,
    DocumentInfo,
    DocumentListResponse,
    DocumentUpdateRequest,
    EntityStatsResponse,
    HealthResponse,
    ProcessingResultResponse,
    ReprocessRequest,
    ReprocessResponse,
)
from aidorag.auth.dependencies import CurrentUser
from aidorag.core.config import AppConfig
from aidorag.core.di_container import DIContainer
from aidorag.core.exceptions import UnsupportedFileTypeError
from aidorag.core.logging import get_logger
from aidorag.core.protocols import FileStorage, RelationalStore
from aidorag.ingestion.backfill import EmbeddingBackfill
from aidorag.ingestion.documents import DocumentManager
from aidorag.ingestion.entities import EntityReprocessor
from aidorag.ingestion.models import DocumentStatus
from aidorag.ingestion.pipeline import IngestionPipeline
from aidorag.ingestion.writer import DOCUMENTS_TABLE

router = APIRouter()

logger = get_logger(__name__)

# Upload size cap for text documents
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


async def _remove_stored_file(file_storage: FileStorage, file_path: str) -> None:
    try:
        await file_storage.delete(file_path)
    except Exception as e:
        logger.error("uploaded_file_cleanup_failed", file_path=file_path, error=str(e))


@router.get("/health", response_model=HealthResponse)
@inject
async def health(
    config: AppConfig = Depends(Provide[DIContainer.config]),  # noqa: B008
) -> HealthResponse:
    """Check service health and configuration."""
    return HealthResponse(
        status="ok",
        storage_backend=config.storage.backend,
        embedding_model=config.gemini.embedding_model,
        embedding_policy=config.ingestion.embedding_policy,
    )


# === Document Endpoints ===


@router.post("/documents/upload", response_model=ApiResponse[ProcessingResultResponse])
@inject
async def upload_document(
    user: CurrentUser,
    file: UploadFile = File(...),  # noqa: B008
    workspace: str | None = Form(default=None),  # noqa: B008
    config: AppConfig = Depends(Provide[DIContainer.config]),  # noqa: B008
    store: RelationalStore = Depends(Provide[DIContainer.store]),  # noqa: B008
    file_storage: FileStorage = Depends(Provide[DIContainer.file_storage]),  # noqa: B008
    pipeline: IngestionPipeline = Depends(Provide[DIContainer.pipeline]),  # noqa: B008
) -> ApiResponse[ProcessingResultResponse]:
    """Upload a text document and process it synchronously.

    The document row is created as ``pending``; the response carries the
    processing outcome, including failures such as empty content.
    """
    filename = PurePosixPath(file.filename or "").name
    if not filename or filename in (".", ".."):
        raise HTTPException(status_code=400, detail="Invalid filename")

    file_type = PurePosixPath(filename).suffix.lower().lstrip(".")
    if file_type not in config.ingestion.supported_file_types:
        raise UnsupportedFileTypeError(file_type or "unknown")

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File exceeds the 10 MB limit")

    document_id = str(uuid.uuid4())
    file_path = f"{user.id}/{document_id}/{filename}"
    await file_storage.upload(file_path, content, file.content_type)

    row = {
        "id": document_id,
        "user_id": user.id,
        "workspace": workspace or config.ingestion.default_workspace,
        "file_name": filename,
        "file_type": file_type,
        "file_size": len(content),
        "file_path": file_path,
        "status": DocumentStatus.PENDING.value,
        "chunks_count": 0,
        "metadata": {},
    }
    try:
        await store.insert(DOCUMENTS_TABLE, [row])
    except Exception:
        # No row points at the stored file, so remove it
        await _remove_stored_file(file_storage, file_path)
        raise
    logger.info("document_uploaded", document_id=document_id, file_name=filename, size=len(content))

    result = await pipeline.process_document(document_id)
    return ApiResponse(data=ProcessingResultResponse(**result.to_dict()))


@router.get("/documents", response_model=ApiResponse[DocumentListResponse])
@inject
async def list_documents(
    user: CurrentUser,
    page: int = Query(default=1, ge=1),  # noqa: B008
    limit: int = Query(default=50, ge=1, le=100),  # noqa: B008
    status: str | None = None,
    workspace: str | None = None,
    documents: DocumentManager = Depends(Provide[DIContainer.document_manager]),  # noqa: B008
) -> ApiResponse[DocumentListResponse]:
    """List the caller's documents, newest first."""
    result = await documents.list_documents(user.id, page=page, limit=limit, status=status, workspace=workspace)
    return ApiResponse(
        data=DocumentListResponse(
            documents=[DocumentInfo.model_validate(d) for d in result.documents],
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        )
    )


@router.get("/documents/{document_id}", response_model=ApiResponse[DocumentInfo])
@inject
async def get_document(
    document_id: str,
    user: CurrentUser,
    documents: DocumentManager = Depends(Provide[DIContainer.document_manager]),  # noqa: B008
) -> ApiResponse[DocumentInfo]:
    """Get a document's processing status."""
    document = await documents.get_document(user.id, document_id)
    return ApiResponse(data=DocumentInfo.model_validate(document))


@router.patch("/documents/{document_id}", response_model=ApiResponse[DocumentInfo])
@inject
async def update_document(
    document_id: str,
    request: DocumentUpdateRequest,
    user: CurrentUser,
    documents: DocumentManager = Depends(Provide[DIContainer.document_manager]),  # noqa: B008
) -> ApiResponse[DocumentInfo]:
    """Rename a document or edit its metadata."""
    document = await documents.update_document(user.id, document_id, request.model_dump(exclude_unset=True))
    return ApiResponse(data=DocumentInfo.model_validate(document))


@router.delete("/documents/{document_id}", response_model=ApiResponse[DocumentDeleteResponse])
@inject
async def delete_document(
    document_id: str,
    user: CurrentUser,
    documents: DocumentManager = Depends(Provide[DIContainer.document_manager]),  # noqa: B008
) -> ApiResponse[DocumentDeleteResponse]:
    """Delete a document, its chunks, derived entities and relations, and its file."""
    result = await documents.delete_document(user.id, document_id)
    return ApiResponse(data=DocumentDeleteResponse(**asdict(result)))


@router.post("/documents/{document_id}/embeddings/backfill", response_model=ApiResponse[BackfillResponse])
@inject
async def backfill_embeddings(
    document_id: str,
    user: CurrentUser,
    documents: DocumentManager = Depends(Provide[DIContainer.document_manager]),  # noqa: B008
    backfill: EmbeddingBackfill = Depends(Provide[DIContainer.backfill]),  # noqa: B008
) -> ApiResponse[BackfillResponse]:
    """Embed chunks of a document that were stored without a vector."""
    await documents.get_document(user.id, document_id)
    result = await backfill.run(document_id=document_id, user_id=user.id)
    return ApiResponse(
        data=BackfillResponse(
            document_id=document_id,
            total=result.total,
            succeeded=result.succeeded,
            failed=result.failed,
        )
    )


# === Entity Re-derivation Endpoints ===


@router.post("/admin/reprocess-entities", response_model=ApiResponse[ReprocessResponse])
@inject
async def reprocess_entities(
    user: CurrentUser,
    request: ReprocessRequest | None = None,
    reprocessor: EntityReprocessor = Depends(Provide[DIContainer.reprocessor]),  # noqa: B008
) -> ApiResponse[ReprocessResponse]:
    """Re-extract entities and relations for the caller's processed documents."""
    document_id = request.document_id if request else None
    report = await reprocessor.reprocess(user.id, document_id=document_id)
    return ApiResponse(data=ReprocessResponse(**report.to_dict()))


@router.get("/admin/reprocess-entities", response_model=ApiResponse[EntityStatsResponse])
@inject
async def entity_stats(
    user: CurrentUser,
    reprocessor: EntityReprocessor = Depends(Provide[DIContainer.reprocessor]),  # noqa: B008
) -> ApiResponse[EntityStatsResponse]:
    """Counts of processed documents, entities and relations for the caller."""
    stats = await reprocessor.stats(user.id)
    return ApiResponse(data=EntityStatsResponse(**stats))
