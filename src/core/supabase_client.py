from functools import lru_cache

from supabase import Client, create_client

from src.core.config import get_settings


@lru_cache()
def get_supabase_client() -> Client:
    """Process-wide Supabase client using the service role key."""
    settings = get_settings()
    url, key = settings.require("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")
    return create_client(url, key)


def clear_cached_client() -> None:
    get_supabase_client.cache_clear()
