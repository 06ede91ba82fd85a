"""Core infrastructure module - config, DI container, protocols, exceptions."""

from aidorag.core.config import AppConfig, GeminiConfig, IngestionConfig, StorageConfig, SupabaseConfig
from aidorag.core.exceptions import AppError, ChunkInsertError, ConfigurationError, StoreError

__all__ = [
    "AppConfig",
    "GeminiConfig",
    "IngestionConfig",
    "StorageConfig",
    "SupabaseConfig",
    "AppError",
    "ChunkInsertError",
    "ConfigurationError",
    "StoreError",
]
