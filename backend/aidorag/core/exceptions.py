"""Custom exception hierarchy."""

from typing import Any


class AppError(Exception):
    """Base application exception."""

    status_code = 500

    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API error envelope."""
        return {
            "success": False,
            "error": self.message,
            "code": self.code,
        }


class ConfigurationError(AppError):
    """Configuration error."""

    def __init__(self, message: str):
        super().__init__(message, code="CONFIG_ERROR")


class StoreError(AppError):
    """Relational store or file storage call failed."""

    def __init__(self, message: str, table: str):
        self.table = table
        super().__init__(message, code="STORE_ERROR")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["details"] = {"table": self.table}
        return result


class ChunkInsertError(AppError):
    """Bulk chunk insert failed; the document has no chunks."""

    def __init__(self, message: str, document_id: str):
        self.document_id = document_id
        super().__init__(message, code="CHUNK_INSERT_ERROR")


class IncompleteEmbeddingError(AppError):
    """Strict embedding policy rejected a document with missing vectors."""

    def __init__(self, document_id: str, vectors_stored: int, chunks_total: int):
        self.document_id = document_id
        self.vectors_stored = vectors_stored
        self.chunks_total = chunks_total
        super().__init__(
            f"Only {vectors_stored}/{chunks_total} chunks have embeddings",
            code="INCOMPLETE_EMBEDDINGS",
        )


class EmbeddingError(AppError):
    """Embedding provider returned an unusable result."""

    def __init__(self, message: str, provider: str):
        self.provider = provider
        super().__init__(message, code="EMBEDDING_ERROR")


class DocumentNotFoundError(AppError):
    """Document does not exist or is not visible to the caller."""

    status_code = 404

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}", code="NOT_FOUND")


class UnsupportedFileTypeError(AppError):
    """File type cannot be processed into text chunks."""

    status_code = 400

    def __init__(self, file_type: str):
        self.file_type = file_type
        super().__init__(f"Unsupported file type: {file_type}", code="UNSUPPORTED_FILE_TYPE")


class InvalidRequestError(AppError):
    """Request is well-formed but asks for nothing that can be done."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_REQUEST")
