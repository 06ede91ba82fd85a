"""Protocol interfaces for dependency injection."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Embedding model interface (one text in, one vector out)."""

    async def embed(self, text: str) -> list[float]:
        """Embed a single chunk of text.

        Raises on provider failure; callers decide how to tolerate it.
        """
        ...


@runtime_checkable
class GenerationProvider(Protocol):
    """Text generation interface used for entity extraction."""

    async def generate(self, prompt: str) -> str:
        """Generate free-form text for a prompt."""
        ...


@runtime_checkable
class RelationalStore(Protocol):
    """Table-oriented persistence interface.

    Filter and match dictionaries are equality conditions combined with AND;
    a value of None means IS NULL.
    """

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert rows in a single call and return the stored rows."""
        ...

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        match: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows matching all conditions and return the updated rows."""
        ...

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Select rows matching all filters.

        ``order_by`` is a column name, prefixed with ``-`` for descending;
        ``limit`` and ``offset`` page through the ordered result.
        """
        ...

    async def delete(self, table: str, match: dict[str, Any]) -> int:
        """Delete rows matching all conditions and return how many were removed."""
        ...

    async def count(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count rows matching all filters."""
        ...


@runtime_checkable
class FileStorage(Protocol):
    """Uploaded file storage interface."""

    async def upload(self, path: str, content: bytes, content_type: str | None = None) -> None:
        """Store a file under a path."""
        ...

    async def download(self, path: str) -> bytes:
        """Download a stored file's raw bytes."""
        ...

    async def delete(self, path: str) -> None:
        """Remove a stored file."""
        ...
