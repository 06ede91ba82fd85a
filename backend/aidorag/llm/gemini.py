"""Gemini providers using langchain-google-genai."""

from __future__ import annotations

from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings

from aidorag.core.config import GeminiConfig
from aidorag.core.exceptions import ConfigurationError, EmbeddingError


def _require_key(config: GeminiConfig) -> str:
    if not config.api_key:
        raise ConfigurationError("GEMINI_API_KEY environment variable is not set")
    return config.api_key


class GeminiEmbeddingProvider:
    """Single-text embeddings with the Gemini embedding model."""

    def __init__(self, config: GeminiConfig):
        self.config = config
        self._client: GoogleGenerativeAIEmbeddings | None = None

    @property
    def client(self) -> GoogleGenerativeAIEmbeddings:
        """Get embeddings client (lazy initialization)."""
        if self._client is None:
            self._client = GoogleGenerativeAIEmbeddings(
                model=self.config.embedding_model,
                google_api_key=_require_key(self.config),
            )
        return self._client

    async def embed(self, text: str) -> list[float]:
        """Embed one text."""
        vectors = await self.client.aembed_documents([text])
        if not vectors:
            raise EmbeddingError("Gemini returned no embedding", provider="gemini")
        return list(vectors[0])


class GeminiGenerationProvider:
    """Text generation with the Gemini chat model."""

    def __init__(self, config: GeminiConfig):
        self.config = config
        self._client: ChatGoogleGenerativeAI | None = None

    @property
    def client(self) -> ChatGoogleGenerativeAI:
        """Get chat client (lazy initialization)."""
        if self._client is None:
            self._client = ChatGoogleGenerativeAI(
                model=self.config.generation_model,
                temperature=self.config.temperature,
                google_api_key=_require_key(self.config),
            )
        return self._client

    async def generate(self, prompt: str) -> str:
        """Generate a single response."""
        response = await self.client.ainvoke(prompt)
        content = response.content
        if isinstance(content, list):
            # Multi-part responses carry text in dict parts or plain strings
            return "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return content
