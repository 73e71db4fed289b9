"""
Search API Routes.

Visual (photo), semantic (free text / voice), mood-wheel and
embedding-only mood search, plus the mood-filter diagnostics endpoint.

Routes are `async def`: the service awaits the vision/LLM APIs directly
and runs the synchronous Supabase client in a worker thread.

Storage and downstream failures raise SearchError, which the handler
registered in api.app turns into a 500 response.
"""

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from core.logging import bind_context, get_logger
from search.models import (
    FacetsResponse,
    MoodFilterDebugResponse,
    MoodSearchRequest,
    SearchResponse,
    SemanticMoodRequest,
    SemanticMoodResponse,
    TextSearchRequest,
    VisualSearchRequest,
)
from search.normalize import normalize_term
from search.service import ListingSearchService, get_listing_search_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/search", tags=["Search"])
debug_router = APIRouter(prefix="/api/debug", tags=["Debug"])


def _bad_request(error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": error, **extra})


def _clean_moods(moods: Optional[List[str]]) -> List[str]:
    return [m.strip() for m in (moods or []) if m and m.strip()]


def _unmatchable(moods: List[str]) -> List[str]:
    """Facets that normalize to nothing and so can never match a tag."""
    return [m for m in moods if not normalize_term(m)]


# =============================================================================
# Visual Search
# =============================================================================

@router.post(
    "/visual",
    response_model=SearchResponse,
    summary="Search by photo",
)
async def visual_search(
    request: VisualSearchRequest,
    service: ListingSearchService = Depends(get_listing_search_service),
) -> Union[SearchResponse, JSONResponse]:
    """
    Find listings that look like the photo.

    Every configured vision analyzer (OpenAI, Claude, Google Vision) tags
    the image concurrently; an analyzer that fails contributes no terms.
    An optional `query` adds text terms on top of the vision terms.
    """
    image_url = (request.image_url or "").strip()
    if not image_url:
        return _bad_request("image_url is required")

    bind_context(search_type="visual", query=request.query)
    return await service.visual_search(image_url, query=request.query, limit=request.limit)


# =============================================================================
# Text / Voice Search
# =============================================================================

@router.post(
    "/semantic",
    response_model=SearchResponse,
    summary="Free-text or voice search",
)
async def semantic_search(
    request: TextSearchRequest,
    service: ListingSearchService = Depends(get_listing_search_service),
) -> Union[SearchResponse, JSONResponse]:
    """
    Search with a typed query or a voice transcript.

    The query is turned into term groups (LLM, falling back to local
    extraction). When term matching finds fewer than `limit` listings the
    result is topped up with embedding matches.
    """
    query = (request.query or "").strip()
    if not query:
        return _bad_request("query is required")

    bind_context(search_type="semantic", query=query)
    return await service.text_search(query, limit=request.limit)


# =============================================================================
# Mood Wheel
# =============================================================================

@router.post(
    "/mood",
    response_model=SearchResponse,
    summary="Mood-wheel search",
)
async def mood_search(
    request: MoodSearchRequest,
    service: ListingSearchService = Depends(get_listing_search_service),
) -> Union[SearchResponse, JSONResponse]:
    """
    Search by selected mood-wheel facets plus an optional text query.

    With no facets and no query this returns the newest active listings
    (browse mode). A facet without letters or digits is rejected.
    """
    moods = _clean_moods(request.moods)
    invalid = _unmatchable(moods)
    if invalid:
        return _bad_request("Invalid moods", moods=invalid)

    bind_context(search_type="mood", query=request.query, moods=moods)
    return await service.mood_search(moods, query=request.query, limit=request.limit)


@router.post(
    "/semantic-mood",
    response_model=SemanticMoodResponse,
    summary="Embedding-only mood search",
)
async def semantic_mood_search(
    request: SemanticMoodRequest,
    service: ListingSearchService = Depends(get_listing_search_service),
) -> Union[SemanticMoodResponse, JSONResponse]:
    """Match the selected moods against listing embeddings."""
    moods = _clean_moods(request.moods)
    if not moods:
        return _bad_request("moods array is required")

    bind_context(search_type="semantic_mood", moods=moods)
    listings = await service.semantic_mood_search(
        moods,
        threshold=request.threshold,
        limit=request.limit,
    )
    return SemanticMoodResponse(listings=listings)


@router.get(
    "/facets",
    response_model=FacetsResponse,
    summary="Mood-wheel facets",
)
async def facets(
    service: ListingSearchService = Depends(get_listing_search_service),
) -> FacetsResponse:
    """Facet names by category, in menu order."""
    return FacetsResponse(**service.variations.facets())


# =============================================================================
# Diagnostics
# =============================================================================

@debug_router.get(
    "/mood-filter",
    response_model=MoodFilterDebugResponse,
    summary="Explain mood-filter matching",
)
async def debug_mood_filter(
    moods: Optional[str] = Query(None, description="Comma-separated facets, e.g. whimsical,gift"),
    limit: int = Query(10, ge=1, le=100),
    service: ListingSearchService = Depends(get_listing_search_service),
) -> Union[MoodFilterDebugResponse, JSONResponse]:
    """
    Show which recent active listings pass the mood filter and why.

    Example: `/api/debug/mood-filter?moods=whimsical,gift&limit=10`
    """
    selected = _clean_moods((moods or "").split(","))
    if not selected:
        return _bad_request(
            "moods parameter is required",
            example="/api/debug/mood-filter?moods=whimsical,gift&limit=10",
        )
    invalid = _unmatchable(selected)
    if invalid:
        return _bad_request("Invalid moods", moods=invalid)

    bind_context(search_type="mood_filter_debug", moods=selected)
    return await service.debug_mood_filter(selected, limit=limit)
