"""Model provider adapters."""

from aidorag.llm.gemini import GeminiEmbeddingProvider, GeminiGenerationProvider

__all__ = ["GeminiEmbeddingProvider", "GeminiGenerationProvider"]
