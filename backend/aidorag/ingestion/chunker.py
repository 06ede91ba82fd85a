"""Fixed-window text chunker."""

from __future__ import annotations

import math

from aidorag.ingestion.models import TextChunk

DEFAULT_CHUNK_SIZE_TOKENS = 800
DEFAULT_CHARS_PER_TOKEN = 4


def estimate_tokens(text: str, chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> int:
    """Approximate token count: ceil(characters / chars_per_token)."""
    return math.ceil(len(text) / chars_per_token)


class TextChunker:
    """Split text into fixed character windows.

    Windows are ``chunk_size_tokens * chars_per_token`` characters wide,
    with no overlap and no awareness of sentence or word boundaries.
    """

    def __init__(
        self,
        chunk_size_tokens: int = DEFAULT_CHUNK_SIZE_TOKENS,
        chars_per_token: int = DEFAULT_CHARS_PER_TOKEN,
    ) -> None:
        """Initialize the chunker.

        Args:
            chunk_size_tokens: Target chunk size in estimated tokens.
            chars_per_token: Characters per estimated token.

        """
        if chunk_size_tokens <= 0 or chars_per_token <= 0:
            raise ValueError("chunk_size_tokens and chars_per_token must be positive")
        self.chunk_size_tokens = chunk_size_tokens
        self.chars_per_token = chars_per_token
        self.window_chars = chunk_size_tokens * chars_per_token

    def chunk(self, text: str) -> list[TextChunk]:
        """Chunk text.

        Args:
            text: Raw document text.

        Returns:
            Chunks in document order. Empty or whitespace-only text gives
            an empty list.

        """
        normalized = text.replace("\r\n", "\n").strip()
        if not normalized:
            return []

        if self._estimate(normalized) <= self.chunk_size_tokens:
            return [TextChunk(content=normalized, token_count=self._estimate(normalized))]

        chunks = []
        for start in range(0, len(normalized), self.window_chars):
            piece = normalized[start : start + self.window_chars].strip()
            if piece:
                chunks.append(TextChunk(content=piece, token_count=self._estimate(piece)))
        return chunks

    def _estimate(self, text: str) -> int:
        return estimate_tokens(text, self.chars_per_token)
