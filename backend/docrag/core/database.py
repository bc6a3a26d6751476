"""
Database connections: Supabase client setup.
"""

from functools import lru_cache
from supabase import create_client, Client

from docrag.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get the Supabase client (singleton).

    Uses the service_role key when configured so the pipeline can read and
    write chunk/analytics tables regardless of RLS, else the anon key.
    """
    settings = get_settings()
    if not settings.SUPABASE_URL:
        raise ValueError("SUPABASE_URL not configured")
    key = settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY
    return create_client(settings.SUPABASE_URL, key)

