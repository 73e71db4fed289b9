"""
Listing search module: term-group filtering over marketplace listings.

Provides:
- ListingSearchService: visual, text, mood and semantic-mood search
- TermExtractor: LLM query -> term groups + price range, with a local fallback
- Vision analyzers: OpenAI, Claude and Google Vision image tagging
- MoodVariationTable: mood-wheel facet -> accepted tag variants
- Matcher: conjunctive term-group matching against listing tags
"""

from search.errors import SearchError, StorageError
from search.matcher import evaluate_listing, filter_listings
from search.models import PriceRange
from search.service import ListingSearchService, get_listing_search_service
from search.term_extractor import TermExtractor, extract_price_range
from search.term_groups import TermGroup, build_groups, merge_groups
from search.variations import DEFAULT_VARIATIONS, MoodVariationTable

__all__ = [
    "DEFAULT_VARIATIONS",
    "ListingSearchService",
    "MoodVariationTable",
    "PriceRange",
    "SearchError",
    "StorageError",
    "TermExtractor",
    "TermGroup",
    "build_groups",
    "evaluate_listing",
    "extract_price_range",
    "filter_listings",
    "get_listing_search_service",
    "merge_groups",
]
