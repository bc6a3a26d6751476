"""
FastAPI dependency injection functions.

Services are built once per process: the indexer's per-file locks and the
search engine's background analytics tasks must be shared by all requests.
Tests swap any of these through `app.dependency_overrides`.
"""

from functools import lru_cache

from supabase import Client

from docrag.config import get_settings
from docrag.core.database import get_supabase_client
from docrag.core.llm_provider import create_embeddings
from docrag.features.analytics.service import AnalyticsTracker
from docrag.features.documents.embedding import EmbeddingClient
from docrag.features.documents.indexer import DocumentIndexer
from docrag.features.documents.store import SupabaseChunkStore, SupabaseFileRepository
from docrag.features.search.service import SearchEngine


def get_db() -> Client:
    """Dependency: get Supabase client."""
    return get_supabase_client()


@lru_cache
def get_embedding_client() -> EmbeddingClient:
    return EmbeddingClient(create_embeddings())


@lru_cache
def get_chunk_store() -> SupabaseChunkStore:
    return SupabaseChunkStore(get_db())


@lru_cache
def get_file_repository() -> SupabaseFileRepository:
    return SupabaseFileRepository(get_db(), get_settings().STORAGE_BUCKET)


@lru_cache
def get_tracker() -> AnalyticsTracker:
    return AnalyticsTracker(get_db())


@lru_cache
def get_indexer() -> DocumentIndexer:
    return DocumentIndexer(get_chunk_store(), get_file_repository(), get_embedding_client())


@lru_cache
def get_search_engine() -> SearchEngine:
    return SearchEngine(
        get_chunk_store(),
        get_file_repository(),
        get_embedding_client(),
        tracker=get_tracker(),
    )
