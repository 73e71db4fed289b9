"""
Listing Search Service: term groups in, filtered active listings out.

Pipeline:
1. Build term groups from each input source
   (text/voice query, mood-wheel facets, vision analyzers)
2. Merge groups by canonical term
3. Fetch active candidates from the listing store (over-fetching to
   absorb filter attrition)
4. Keep candidates where every group matches (conjunctive filter)
5. Truncate to the limit and attach debug provenance

With no term groups at all the service runs in browse mode and returns
the newest active listings; a price range from the query still applies.
"""

import asyncio
import threading
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from config.constants import (
    DEBUG_LISTING_COLUMNS,
    DEBUG_MAX_MATCHES,
    DEBUG_SAMPLE_NON_MATCHES,
    DEBUG_TITLE_CHARS,
)
from config.database import get_listing_store
from config.settings import Settings, get_settings
from core.logging import get_logger
from search.embeddings import EmbeddingClient
from search.errors import EmbeddingError, StorageError
from search.listing_store import ListingStore
from search.matcher import evaluate_listing, listing_tags
from search.models import (
    Listing,
    MatchDetail,
    MoodFilterDebugResponse,
    MoodFilterListing,
    MoodFilterMatch,
    MoodFilterSample,
    PriceRange,
    SearchDebug,
    SearchMode,
    SearchResponse,
    SourceTerms,
)
from search.normalize import normalize_term
from search.term_extractor import TermExtraction, TermExtractor
from search.term_groups import (
    TermGroup,
    build_groups,
    collect_vision_terms,
    groups_for_facets,
    merge_groups,
    term_list,
)
from search.variations import DEFAULT_VARIATIONS, MoodVariationTable
from search.vision import AnalyzerOutcome, VisionAnalyzer, analyze_all, build_default_analyzers

logger = get_logger(__name__)


def _ms(t_start: float) -> int:
    return int((time.time() - t_start) * 1000)


class ListingSearchService:
    """
    Main search service.

    Collaborators are injected so tests can swap in fakes; anything not
    given is built lazily from settings on first use.
    """

    def __init__(
        self,
        store: Optional[ListingStore] = None,
        analyzers: Optional[Sequence[VisionAnalyzer]] = None,
        extractor: Optional[TermExtractor] = None,
        embeddings: Optional[EmbeddingClient] = None,
        variations: MoodVariationTable = DEFAULT_VARIATIONS,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings
        self._store = store
        self._analyzers = list(analyzers) if analyzers is not None else None
        self._extractor = extractor
        self._embeddings = embeddings
        self._variations = variations

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def store(self) -> ListingStore:
        if self._store is None:
            self._store = get_listing_store(self.settings)
        return self._store

    @property
    def analyzers(self) -> List[VisionAnalyzer]:
        if self._analyzers is None:
            self._analyzers = build_default_analyzers(self.settings)
        return self._analyzers

    @property
    def extractor(self) -> TermExtractor:
        if self._extractor is None:
            self._extractor = TermExtractor(settings=self.settings, variations=self._variations)
        return self._extractor

    @property
    def embeddings(self) -> EmbeddingClient:
        if self._embeddings is None:
            self._embeddings = EmbeddingClient(settings=self.settings)
        return self._embeddings

    @property
    def variations(self) -> MoodVariationTable:
        return self._variations

    def resolve_limit(self, limit: Optional[int]) -> int:
        """Default when missing or 0, clamped to [1, search_max_limit]."""
        if not limit:
            return self.settings.search_default_limit
        return max(1, min(int(limit), self.settings.search_max_limit))

    def candidate_pool_size(self, limit: int) -> int:
        return min(limit * self.settings.search_overfetch_factor, self.settings.search_candidate_cap)

    # =========================================================================
    # Core Search
    # =========================================================================

    async def search(
        self,
        term_groups: Sequence[TermGroup],
        limit: Optional[int] = None,
        source_query: str = "",
        labels: Optional[Mapping[str, str]] = None,
        category: Optional[str] = None,
        price_range: Optional[PriceRange] = None,
    ) -> SearchResponse:
        """
        Filter active listings by term groups.

        Args:
            term_groups: Groups from any mix of sources; merged here.
            limit: Max results (default from settings).
            source_query: Original text, for logs and debug.
            labels: Canonical term -> user-facing label, for diagnostics.
            category: Optional category predicate pushed down to the store.
            price_range: Optional price bounds pushed down to the store.

        Returns:
            SearchResponse. mode is BROWSE when there are no groups.

        Raises:
            StorageError: The listing store failed.
        """
        t_start = time.time()
        limit = self.resolve_limit(limit)
        groups = merge_groups(term_groups)
        combined = term_list(groups)

        if not groups:
            rows = await self.store.fetch_active(limit=limit, category=category, price_range=price_range)
            listings = [Listing.model_validate(row) for row in rows[:limit]]
            logger.info(
                "Browse mode search (no terms)",
                query=source_query,
                price_range=price_range.model_dump() if price_range else None,
                results=len(listings),
                latency_ms=_ms(t_start),
            )
            return SearchResponse(
                listings=listings,
                total=len(listings),
                mode=SearchMode.BROWSE,
                debug=SearchDebug(
                    query=source_query,
                    candidates_scanned=len(rows),
                    price_range=price_range,
                    timing={"fetch_ms": _ms(t_start), "total_ms": _ms(t_start)},
                ),
            )

        pool_size = self.candidate_pool_size(limit)
        t_fetch = time.time()
        rows = await self.store.fetch_active(limit=pool_size, category=category, price_range=price_range)
        fetch_ms = _ms(t_fetch)

        t_match = time.time()
        term_match_counts: Dict[str, int] = {term: 0 for term in combined}
        kept: List[Dict[str, Any]] = []
        for row in rows:
            evaluation = evaluate_listing(row, groups, labels=labels)
            for detail in evaluation.details:
                if detail.matched:
                    term_match_counts[detail.normalized_mood] += 1
            if evaluation.all_matched:
                kept.append(row)
        match_ms = _ms(t_match)

        listings = [Listing.model_validate(row) for row in kept[:limit]]

        logger.info(
            "Term search completed",
            query=source_query,
            terms=combined,
            price_range=price_range.model_dump() if price_range else None,
            candidates=len(rows),
            matched=len(kept),
            results=len(listings),
            term_match_counts=term_match_counts,
            latency_ms=_ms(t_start),
        )

        return SearchResponse(
            listings=listings,
            total=len(listings),
            mode=SearchMode.FILTER,
            debug=SearchDebug(
                query=source_query,
                combined=combined,
                candidates_scanned=len(rows),
                price_range=price_range,
                term_match_counts=term_match_counts,
                timing={"fetch_ms": fetch_ms, "match_ms": match_ms, "total_ms": _ms(t_start)},
            ),
        )

    # =========================================================================
    # Entry Points
    # =========================================================================

    async def visual_search(
        self,
        image_url: str,
        query: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> SearchResponse:
        """
        Search by photo.

        All configured analyzers and the text-query extraction run
        concurrently; failed or unconfigured analyzers contribute no terms.
        """
        t_start = time.time()
        outcomes, extraction = await asyncio.gather(
            analyze_all(self.analyzers, image_url, hint=query),
            self.extractor.extract(query),
        )
        vision_ms = _ms(t_start)

        vision_debug: List[SourceTerms] = []
        vision_groups: List[TermGroup] = []
        for outcome in outcomes:
            terms = self._outcome_terms(outcome)
            vision_debug.append(SourceTerms(source=outcome.source, terms=terms))
            vision_groups.extend(build_groups(terms))

        combined = merge_groups(list(extraction.term_groups) + merge_groups(vision_groups))

        logger.info(
            "Visual search terms resolved",
            image_url=image_url,
            query=query,
            vision={d.source: d.terms for d in vision_debug},
            failed=[o.source for o in outcomes if o.error],
            combined=term_list(combined),
        )

        result = await self.search(
            combined,
            limit=limit,
            source_query=query or "",
            price_range=extraction.price_range,
        )
        result.debug.vision = vision_debug
        result.debug.query_terms = self._query_terms(extraction)
        result.debug.timing["vision_ms"] = vision_ms
        result.debug.timing["total_ms"] = _ms(t_start)
        return result

    async def text_search(self, query: str, limit: Optional[int] = None) -> SearchResponse:
        """
        Free-text / voice search.

        When term matching finds fewer than `limit` listings, the result is
        topped up with embedding matches (if enabled), skipping duplicates
        and listings outside the query's price range.
        """
        t_start = time.time()
        limit = self.resolve_limit(limit)
        extraction = await self.extractor.extract(query)

        result = await self.search(
            extraction.term_groups,
            limit=limit,
            source_query=query,
            price_range=extraction.price_range,
        )
        result.debug.query_terms = self._query_terms(extraction)

        if (
            self.settings.semantic_fallback_enabled
            and result.mode == SearchMode.FILTER
            and len(result.listings) < limit
        ):
            t_semantic = time.time()
            extra = await self._semantic_top_up(query, limit)
            seen = {listing.id for listing in result.listings}
            added = 0
            for row in extra:
                listing = Listing.model_validate(row)
                if listing.id in seen or len(result.listings) >= limit:
                    continue
                if extraction.price_range and not extraction.price_range.contains(row.get("price")):
                    continue
                result.listings.append(listing)
                seen.add(listing.id)
                added += 1
            result.total = len(result.listings)
            result.debug.semantic_matches_added = added
            result.debug.timing["semantic_ms"] = _ms(t_semantic)

        result.debug.timing["total_ms"] = _ms(t_start)
        return result

    async def mood_search(
        self,
        moods: Sequence[str],
        query: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> SearchResponse:
        """
        Mood-wheel search: facets expanded through the variation table.

        A selected facet with no searchable text (e.g. "!!!") can match no
        listing, so the result is an empty FILTER response rather than the
        browse feed.
        """
        unmatchable = [m for m in moods if m and m.strip() and not normalize_term(m)]
        facet_groups = groups_for_facets(moods, self._variations)
        extraction = await self.extractor.extract(query)
        labels = self._facet_labels(moods)

        combined = merge_groups(facet_groups + list(extraction.term_groups))
        if unmatchable:
            logger.info("Mood facets have no searchable text", moods=unmatchable, query=query)
            return SearchResponse(
                listings=[],
                total=0,
                mode=SearchMode.FILTER,
                debug=SearchDebug(query=query or "", combined=term_list(combined)),
            )

        result = await self.search(
            combined,
            limit=limit,
            source_query=query or "",
            labels=labels,
            price_range=extraction.price_range,
        )
        if extraction.term_groups:
            result.debug.query_terms = self._query_terms(extraction)
        return result

    async def semantic_mood_search(
        self,
        moods: Sequence[str],
        threshold: float,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """
        Pure embedding search over the selected moods.

        Raises:
            EmbeddingError: Query could not be embedded.
            StorageError: The match RPC failed.
        """
        query_text = ", ".join(m.strip() for m in moods if m and m.strip())
        vector = await self.embeddings.embed(query_text)
        matches = await self.store.match_by_embedding(vector, threshold=threshold, count=limit)
        logger.info("Semantic mood search completed", moods=list(moods), results=len(matches))
        return matches

    async def debug_mood_filter(self, moods: Sequence[str], limit: int = 10) -> MoodFilterDebugResponse:
        """
        Explain how the mood filter treats recent active listings.

        Fetches `limit * 3` candidates and reports, per matching listing,
        which facet matched which tag.
        """
        groups = groups_for_facets(moods, self._variations)
        labels = self._facet_labels(moods)
        rows = await self.store.fetch_active(limit=limit * 3, columns=DEBUG_LISTING_COLUMNS)

        matches: List[MoodFilterMatch] = []
        non_matches: List[MoodFilterSample] = []
        for row in rows:
            evaluation = evaluate_listing(row, groups, labels=labels)
            summary = self._debug_listing(row)
            if evaluation.all_matched:
                matches.append(MoodFilterMatch(
                    listing=summary,
                    match_details=[MatchDetail(**d.to_dict()) for d in evaluation.details],
                    all_matched=True,
                ))
            elif len(non_matches) < DEBUG_SAMPLE_NON_MATCHES:
                non_matches.append(MoodFilterSample(
                    **summary.model_dump(),
                    all_fields=[
                        v.lower()
                        for v in summary.styles_normalized + summary.moods_normalized + summary.intents_normalized
                    ],
                ))

        logger.info(
            "Mood filter debug",
            moods=list(moods),
            candidates=len(rows),
            matches=len(matches),
        )
        return MoodFilterDebugResponse(
            selected_moods=list(moods),
            total_listings=len(rows),
            matches_found=len(matches),
            matches=matches[:DEBUG_MAX_MATCHES],
            sample_non_matches=non_matches,
            debug={
                "selected_moods_normalized": [normalize_term(m) for m in moods],
                "term_groups": [g.to_dict() for g in groups],
            },
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _semantic_top_up(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """Embedding matches for a query; failures are logged, not raised."""
        if not self.embeddings.enabled:
            return []
        try:
            vector = await self.embeddings.embed(query)
            matches = await self.store.match_by_embedding(
                vector,
                threshold=self.settings.embedding_match_threshold,
                count=limit,
            )
            ids = [str(m["id"]) for m in matches if m.get("id")]
            return await self.store.fetch_by_ids(ids)
        except (EmbeddingError, StorageError) as e:
            logger.warning(
                "Semantic top-up failed, returning term matches only",
                query=query,
                stage=e.stage,
                error=str(e),
            )
            return []

    @staticmethod
    def _outcome_terms(outcome: AnalyzerOutcome) -> List[str]:
        if outcome.analysis is None:
            return []
        return collect_vision_terms(outcome.analysis.model_dump())

    @staticmethod
    def _query_terms(extraction: TermExtraction) -> SourceTerms:
        return SourceTerms(source=extraction.source.value, terms=extraction.terms)

    @staticmethod
    def _facet_labels(moods: Sequence[str]) -> Dict[str, str]:
        labels: Dict[str, str] = {}
        for mood in moods:
            key = normalize_term(mood)
            if key:
                labels.setdefault(key, mood.strip())
        return labels

    @staticmethod
    def _debug_listing(row: Mapping[str, Any]) -> MoodFilterListing:
        tags = listing_tags(row)
        title = row.get("title")
        return MoodFilterListing(
            id=str(row.get("id")),
            title=title[:DEBUG_TITLE_CHARS] if isinstance(title, str) else None,
            styles=row.get("styles"),
            moods=row.get("moods"),
            intents=row.get("intents"),
            styles_normalized=tags["styles"],
            moods_normalized=tags["moods"],
            intents_normalized=tags["intents"],
        )


# =============================================================================
# Singleton
# =============================================================================

_service: Optional[ListingSearchService] = None
_service_lock = threading.Lock()


def get_listing_search_service() -> ListingSearchService:
    """Get or create the ListingSearchService singleton (thread-safe)."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = ListingSearchService()
    return _service
