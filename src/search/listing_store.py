"""
Listing store: read-only access to marketplace listings in Supabase.

The supabase-py client is synchronous, so every query runs in a worker
thread via asyncio.to_thread and the event loop stays free while the
database answers. Any client or PostgREST failure is re-raised as
StorageError; an empty result is a valid success.
"""

import asyncio
from typing import Any, Dict, List, Optional, Protocol, Sequence

from config.database import get_supabase_client
from core.logging import get_logger
from search.errors import StorageError
from search.models import ListingStatus, PriceRange

logger = get_logger(__name__)


class ListingStore(Protocol):
    """What ListingSearchService needs from storage."""

    async def fetch_active(
        self,
        limit: int,
        category: Optional[str] = None,
        columns: str = "*",
        price_range: Optional[PriceRange] = None,
    ) -> List[Dict[str, Any]]:
        ...

    async def fetch_by_ids(self, ids: Sequence[str]) -> List[Dict[str, Any]]:
        ...

    async def match_by_embedding(
        self,
        embedding: Sequence[float],
        threshold: float,
        count: int,
    ) -> List[Dict[str, Any]]:
        ...


class SupabaseListingStore:
    """ListingStore backed by the `listings` table and the match RPC."""

    def __init__(
        self,
        client: Any = None,
        table: str = "listings",
        match_rpc: str = "match_listings_by_mood",
    ):
        self._client = client
        self._table = table
        self._match_rpc = match_rpc

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def fetch_active(
        self,
        limit: int,
        category: Optional[str] = None,
        columns: str = "*",
        price_range: Optional[PriceRange] = None,
    ) -> List[Dict[str, Any]]:
        """
        Newest active listings.

        Args:
            limit: Row limit.
            category: Optional case-insensitive substring match on category.
            columns: PostgREST select list.
            price_range: Optional inclusive bounds on the price column.
        """
        def _query():
            query = (
                self.client.table(self._table)
                .select(columns)
                .eq("status", ListingStatus.ACTIVE.value)
            )
            if category:
                query = query.ilike("category", f"%{category}%")
            if price_range is not None:
                if price_range.min is not None:
                    query = query.gte("price", price_range.min)
                if price_range.max is not None:
                    query = query.lte("price", price_range.max)
            return query.order("created_at", desc=True).limit(limit).execute()

        response = await self._run(
            "fetch_active",
            _query,
            limit=limit,
            category=category,
            price_range=price_range.model_dump() if price_range else None,
        )
        return list(response.data or [])

    async def fetch_by_ids(self, ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Active listings with the given ids, in the order of `ids`."""
        ids = [i for i in ids if i]
        if not ids:
            return []

        def _query():
            return (
                self.client.table(self._table)
                .select("*")
                .in_("id", ids)
                .eq("status", ListingStatus.ACTIVE.value)
                .execute()
            )

        response = await self._run("fetch_by_ids", _query, count=len(ids))
        by_id = {str(row.get("id")): row for row in (response.data or [])}
        return [by_id[i] for i in ids if i in by_id]

    async def match_by_embedding(
        self,
        embedding: Sequence[float],
        threshold: float,
        count: int,
    ) -> List[Dict[str, Any]]:
        """Rows returned by the embedding match RPC, best first."""
        def _query():
            return self.client.rpc(
                self._match_rpc,
                {
                    "query_embedding": list(embedding),
                    "match_threshold": threshold,
                    "match_count": count,
                },
            ).execute()

        response = await self._run("match_by_embedding", _query, count=count)
        return list(response.data or [])

    async def _run(self, stage: str, fn, **context):
        try:
            return await asyncio.to_thread(fn)
        except Exception as e:
            logger.error(
                "Listing store query failed",
                stage=stage,
                error=str(e),
                error_type=type(e).__name__,
                **context,
            )
            raise StorageError(f"Listing store query failed: {e}", stage=stage) from e
