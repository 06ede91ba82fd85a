"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file from backend root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


class GeminiConfig(BaseSettings):
    """Gemini provider configuration."""

    api_key: str | None = None
    embedding_model: str = "models/text-embedding-004"
    generation_model: str = "gemini-1.5-flash"
    temperature: float = 0.1

    model_config = SettingsConfigDict(env_prefix="GEMINI_")


class IngestionConfig(BaseSettings):
    """Document ingestion pipeline configuration."""

    chunk_size_tokens: int = Field(default=800, gt=0)
    chars_per_token: int = Field(default=4, gt=0)
    embedding_dimension: int = 768
    embedding_delay_ms: int = Field(default=60, ge=0)
    embedding_concurrency: int = Field(default=1, ge=1)
    embedding_policy: Literal["best_effort", "strict"] = "best_effort"
    # 0 inserts every chunk row in a single call
    insert_batch_size: int = Field(default=0, ge=0)
    delete_document_on_insert_failure: bool = True
    entity_extraction_enabled: bool = True
    min_extraction_chars: int = 50
    default_workspace: str = "default"
    supported_file_types: list[str] = Field(default_factory=lambda: ["txt", "md"])

    model_config = SettingsConfigDict(env_prefix="INGESTION_")


class StorageConfig(BaseSettings):
    """Relational store and file storage configuration."""

    backend: Literal["supabase", "in_memory"] = "supabase"
    bucket: str = "documents"

    model_config = SettingsConfigDict(env_prefix="STORAGE_")


class SupabaseConfig(BaseSettings):
    """Supabase connection configuration."""

    url: str | None = None
    service_key: str | None = None

    model_config = SettingsConfigDict(env_prefix="SUPABASE_")


class AppConfig(BaseSettings):
    """Top-level application configuration."""

    app_name: str = "AIDORag Ingestion"
    debug: bool = False
    log_level: str = "INFO"
    log_to_file: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list = Field(default_factory=lambda: ["*"])

    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)

    model_config = SettingsConfigDict(env_file=str(_env_file), env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return AppConfig()
