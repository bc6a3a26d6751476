"""
docrag - FastAPI Application Entry Point.

Feature-based modular architecture:
  documents  -> indexing pipeline, semantic search, chunk inspection
  analytics  -> search tracking, aggregates, saved queries
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docrag.config import get_settings
from docrag.core.exceptions import AppBaseError, app_error_handler

# ── Feature Routers ──────────────────────────────────────
from docrag.features.documents.router import router as documents_router
from docrag.features.documents.router import files_router
from docrag.features.analytics.router import router as analytics_router

logger = logging.getLogger(__name__)


def configure_logging():
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup & shutdown."""
    from docrag.background.scheduler import init_scheduler, shutdown_scheduler
    from docrag.core.dependencies import get_search_engine

    settings = get_settings()
    logger.info(f"🚀 {settings.APP_NAME} v{settings.APP_VERSION} starting...")
    logger.info(f"🧠 Embeddings: {settings.EMBEDDING_PROVIDER} ({settings.EMBEDDING_MODEL}, {settings.EMBEDDING_DIMENSIONS} dims)")
    logger.info(f"🔗 Supabase: {settings.SUPABASE_URL[:40]}...")
    init_scheduler()
    yield
    shutdown_scheduler()
    # Let in-flight analytics writes finish before the loop goes away
    await get_search_engine().drain()
    logger.info("👋 Shutting down...")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Application factory."""
    settings = get_settings()
    configure_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        description="RAG document pipeline: chunking, embeddings, semantic search and search analytics",
        lifespan=lifespan if use_lifespan else None,
    )

    # ── CORS ─────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppBaseError, app_error_handler)

    # ── Register Feature Routers ─────────────────────────
    app.include_router(documents_router, prefix="/api/documents", tags=["Documents"])
    app.include_router(files_router, prefix="/api/files", tags=["Files"])
    app.include_router(analytics_router, prefix="/api/search", tags=["Search Analytics"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()
