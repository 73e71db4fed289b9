"""
Supabase access for the search service.

One client is shared by every request. Listings live in the table named
by LISTINGS_TABLE and are matched against query embeddings by the RPC in
EMBEDDING_MATCH_RPC; get_listing_store() binds both to the shared client.
"""

from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

from config.settings import Settings, get_settings


class SupabaseClientError(Exception):
    """Raised when Supabase client cannot be created."""
    pass


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get the singleton Supabase client instance.

    Returns:
        Client: The Supabase client instance

    Raises:
        SupabaseClientError: If client cannot be created
    """
    try:
        settings = get_settings()
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    """
    Get the Supabase client, returning None if it cannot be created.

    Used by health checks so a missing configuration reports as
    "not_configured" instead of failing the check.
    """
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None


def get_listing_store(settings: Optional[Settings] = None):
    """
    Listing store over the shared client.

    The client is only created on the store's first query, so building a
    store never touches the network.
    """
    from search.listing_store import SupabaseListingStore

    settings = settings or get_settings()
    return SupabaseListingStore(
        table=settings.listings_table,
        match_rpc=settings.embedding_match_rpc,
    )
