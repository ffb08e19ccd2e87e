"""
Database client singletons.

The preference store talks to Supabase; this module owns the single
client instance shared by every store object in the process.
"""

from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

from config.settings import get_settings


class SupabaseClientError(Exception):
    """Raised when Supabase client cannot be created."""
    pass


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get the singleton Supabase client instance.

    Raises:
        SupabaseClientError: If the project is not configured or the
            client cannot be created.
    """
    settings = get_settings()
    if not settings.has_remote_store:
        raise SupabaseClientError("SUPABASE_URL / SUPABASE_SERVICE_KEY are not set")
    try:
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    """
    Get the Supabase client, returning None if it cannot be created.

    Used by the pipeline factory to fall back to the in-memory store.
    """
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None


# Type alias for cleaner type hints
SupabaseClient = Client
