"""Dependency Injector based DI Container."""

from dependency_injector import containers, providers

from aidorag.core.config import get_config

# --- Factory Functions (defined before class to avoid NameError) ---

def _create_store(config):
    """Create relational store for the configured backend."""
    if config.storage.backend == "in_memory":
        from aidorag.storage.memory_store import InMemoryStore
        return InMemoryStore()

    from aidorag.storage.supabase_store import SupabaseStore
    return SupabaseStore(url=config.supabase.url, service_key=config.supabase.service_key)


def _create_file_storage(config, store):
    """Create file storage for uploaded documents."""
    if config.storage.backend == "in_memory":
        from aidorag.storage.memory_store import InMemoryFileStorage
        return InMemoryFileStorage()

    from aidorag.storage.supabase_store import SupabaseFileStorage
    return SupabaseFileStorage(store=store, bucket=config.storage.bucket)


def _create_embedding_provider(config):
    """Create Gemini embedding provider."""
    from aidorag.llm.gemini import GeminiEmbeddingProvider
    return GeminiEmbeddingProvider(config)


def _create_generation_provider(config):
    """Create Gemini generation provider."""
    from aidorag.llm.gemini import GeminiGenerationProvider
    return GeminiGenerationProvider(config)


def _create_chunker(config):
    """Create text chunker."""
    from aidorag.ingestion.chunker import TextChunker
    return TextChunker(
        chunk_size_tokens=config.chunk_size_tokens,
        chars_per_token=config.chars_per_token,
    )


def _create_embedding_generator(config, provider):
    """Create embedding generator."""
    from aidorag.ingestion.embeddings import EmbeddingGenerator
    return EmbeddingGenerator(
        provider=provider,
        dimension=config.embedding_dimension,
        delay_ms=config.embedding_delay_ms,
        concurrency=config.embedding_concurrency,
    )


def _create_writer(config, store):
    """Create two-phase chunk writer."""
    from aidorag.ingestion.writer import ChunkStoreWriter
    return ChunkStoreWriter(
        store=store,
        policy=config.embedding_policy,
        batch_size=config.insert_batch_size,
    )


def _create_lock_manager():
    """Create per-document lock registry."""
    from aidorag.core.locks import DocumentLockManager
    return DocumentLockManager()


def _create_entity_extractor(config, generator, store):
    """Create entity extractor."""
    from aidorag.ingestion.entities import EntityExtractor
    return EntityExtractor(
        generator=generator,
        store=store,
        min_chunk_chars=config.min_extraction_chars,
    )


def _create_pipeline(config, store, file_storage, chunker, embedding_generator, writer, locks, entity_extractor):
    """Create ingestion pipeline."""
    from aidorag.ingestion.pipeline import IngestionPipeline
    return IngestionPipeline(
        store=store,
        file_storage=file_storage,
        chunker=chunker,
        embedding_generator=embedding_generator,
        writer=writer,
        locks=locks,
        entity_extractor=entity_extractor if config.entity_extraction_enabled else None,
        delete_document_on_insert_failure=config.delete_document_on_insert_failure,
        default_workspace=config.default_workspace,
        supported_file_types=config.supported_file_types,
    )


def _create_reprocessor(config, store, entity_extractor, locks):
    """Create entity reprocessor."""
    from aidorag.ingestion.entities import EntityReprocessor
    return EntityReprocessor(
        store=store,
        extractor=entity_extractor,
        locks=locks,
        default_workspace=config.default_workspace,
    )


def _create_backfill(store, embedding_generator):
    """Create embedding backfill."""
    from aidorag.ingestion.backfill import EmbeddingBackfill
    return EmbeddingBackfill(store=store, generator=embedding_generator)


def _create_document_manager(store, file_storage, locks):
    """Create document manager."""
    from aidorag.ingestion.documents import DocumentManager
    return DocumentManager(store=store, file_storage=file_storage, locks=locks)


def _create_auth_client(config):
    """Create Supabase auth client."""
    from aidorag.auth.supabase_client import SupabaseAuthClient

    if not config.url or not config.service_key:
        return None
    return SupabaseAuthClient(url=config.url, service_key=config.service_key)


class DIContainer(containers.DeclarativeContainer):
    """Main dependency injection container."""

    # Configuration provider
    config = providers.Singleton(get_config)

    # Relational Store
    store = providers.Singleton(
        _create_store,
        config=config,
    )

    # File Storage
    file_storage = providers.Singleton(
        _create_file_storage,
        config=config,
        store=store,
    )

    # Model Providers
    embedding_provider = providers.Singleton(
        _create_embedding_provider,
        config=config.provided.gemini,
    )

    generation_provider = providers.Singleton(
        _create_generation_provider,
        config=config.provided.gemini,
    )

    # Per-document Locks
    lock_manager = providers.Singleton(_create_lock_manager)

    # Text Chunker
    chunker = providers.Factory(
        _create_chunker,
        config=config.provided.ingestion,
    )

    # Embedding Generator
    embedding_generator = providers.Singleton(
        _create_embedding_generator,
        config=config.provided.ingestion,
        provider=embedding_provider,
    )

    # Chunk Writer
    writer = providers.Singleton(
        _create_writer,
        config=config.provided.ingestion,
        store=store,
    )

    # Entity Extractor
    entity_extractor = providers.Singleton(
        _create_entity_extractor,
        config=config.provided.ingestion,
        generator=generation_provider,
        store=store,
    )

    # Ingestion Pipeline
    pipeline = providers.Singleton(
        _create_pipeline,
        config=config.provided.ingestion,
        store=store,
        file_storage=file_storage,
        chunker=chunker,
        embedding_generator=embedding_generator,
        writer=writer,
        locks=lock_manager,
        entity_extractor=entity_extractor,
    )

    # Entity Reprocessor
    reprocessor = providers.Singleton(
        _create_reprocessor,
        config=config.provided.ingestion,
        store=store,
        entity_extractor=entity_extractor,
        locks=lock_manager,
    )

    # Embedding Backfill
    backfill = providers.Factory(
        _create_backfill,
        store=store,
        embedding_generator=embedding_generator,
    )

    # Document Manager
    document_manager = providers.Singleton(
        _create_document_manager,
        store=store,
        file_storage=file_storage,
        locks=lock_manager,
    )

    # Auth Client
    auth_client = providers.Singleton(
        _create_auth_client,
        config=config.provided.supabase,
    )


# Global container instance
container = DIContainer()
