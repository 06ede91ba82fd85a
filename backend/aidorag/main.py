"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aidorag import __version__
from aidorag.api.middleware import ExceptionHandlerMiddleware, RequestLoggingMiddleware, register_exception_handlers
from aidorag.api.routes import router as api_router
from aidorag.core.config import get_config
from aidorag.core.di_container import container as di_container
from aidorag.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    config = di_container.config()

    setup_logging(
        log_level=config.log_level,
        json_format=not config.debug,
        log_to_file=config.log_to_file,
    )

    # Wire DI container
    di_container.wire(
        modules=[
            "aidorag.api.routes",
            "aidorag.auth.dependencies",
        ]
    )

    logger.info(
        "application_starting",
        app_name=config.app_name,
        storage_backend=config.storage.backend,
        embedding_model=config.gemini.embedding_model,
        embedding_policy=config.ingestion.embedding_policy,
    )

    yield

    di_container.unwire()

    logger.info("application_shutting_down")
    auth_client = di_container.auth_client()
    if auth_client is not None:
        await auth_client.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = get_config()

    app = FastAPI(
        title=config.app_name,
        description="Document ingestion: chunking, Gemini embeddings and entity extraction",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ExceptionHandlerMiddleware)

    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "name": config.app_name,
            "version": __version__,
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "aidorag.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
    )
