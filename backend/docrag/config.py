"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "docrag"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    # ── Supabase ─────────────────────────────────────────
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""  # anon/public key
    SUPABASE_SERVICE_KEY: str = ""  # service_role key (for admin ops)
    STORAGE_BUCKET: str = "task-files"

    # ── Embedding ────────────────────────────────────────
    EMBEDDING_PROVIDER: str = "openai"  # openai | gemini
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_API_KEY: str = ""
    EMBEDDING_DIMENSIONS: int = 1536
    EMBEDDING_MAX_RETRIES: int = 3
    EMBEDDING_BACKOFF_BASE: float = 1.0  # seconds
    EMBEDDING_BACKOFF_MAX: float = 20.0  # seconds

    # ── Chunking (production indexing) ───────────────────
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 100
    MAX_CHUNKS_PER_FILE: int = 100

    # ── Search ───────────────────────────────────────────
    SEARCH_MATCH_THRESHOLD: float = 0.78
    SEARCH_MATCH_COUNT: int = 10
    SEARCH_TIMEOUT_SECONDS: float = 15.0

    # ── Analytics ────────────────────────────────────────
    ANALYTICS_RETENTION_DAYS: int = 90
    ANALYTICS_CLEANUP_ENABLED: bool = True
    ANALYTICS_CLEANUP_HOUR: int = 3  # daily, server local time

    # ── Batch processing ─────────────────────────────────
    MAX_BATCH_SIZE: int = 10

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton)."""
    return Settings()
