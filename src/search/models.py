"""
Pydantic models for the search API.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from search.normalize import normalize_tag_column


# ============================================================================
# Enums
# ============================================================================

class ListingStatus(str, Enum):
    """Listing lifecycle state. Only ACTIVE listings are searchable."""
    DRAFT = "draft"
    ACTIVE = "active"
    SOLD = "sold"
    HIDDEN = "hidden"


class SearchMode(str, Enum):
    """How a search was resolved."""
    FILTER = "filter"  # At least one term group: conjunctive filter applied
    BROWSE = "browse"  # No term groups: newest active listings, only price/category predicates


class TermSource(str, Enum):
    """Where free-text query terms came from."""
    OPENAI = "openai"
    LOCAL = "local"


# ============================================================================
# Price
# ============================================================================

class PriceRange(BaseModel):
    """Inclusive price bounds in dollars; either side may be open."""
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)

    @property
    def is_open(self) -> bool:
        return self.min is None and self.max is None

    def contains(self, price: Any) -> bool:
        """False for a missing or non-numeric price."""
        try:
            value = float(price)
        except (TypeError, ValueError):
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


# ============================================================================
# Listing
# ============================================================================

class Listing(BaseModel):
    """
    A marketplace listing as read from the store.

    Tag columns are normalized on the way in; any other column the store
    returns (price, images, seller profile...) is passed through as-is.
    """
    model_config = ConfigDict(extra="allow")

    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    styles: List[str] = Field(default_factory=list)
    moods: List[str] = Field(default_factory=list)
    intents: List[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v

    @field_validator("styles", "moods", "intents", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return normalize_tag_column(v)


# ============================================================================
# Request Models
# ============================================================================

class VisualSearchRequest(BaseModel):
    """Search by photo, optionally narrowed by a spoken/typed hint."""
    image_url: Optional[str] = Field(None, max_length=2048, description="Public URL of the image to analyze")
    query: Optional[str] = Field(None, max_length=500, description="Optional text hint")
    limit: Optional[int] = Field(None, ge=0, description="Max results (0 or null: default 24)")


class TextSearchRequest(BaseModel):
    """Free-text or voice-transcript search."""
    query: Optional[str] = Field(None, max_length=500, description="Search query")
    limit: Optional[int] = Field(None, ge=0, description="Max results (0 or null: default 24)")


class MoodSearchRequest(BaseModel):
    """Mood-wheel search: selected facets plus an optional text query."""
    moods: List[str] = Field(default_factory=list, description="Selected vibes/purposes/styles")
    query: Optional[str] = Field(None, max_length=500, description="Optional text query")
    limit: Optional[int] = Field(None, ge=0, description="Max results (0 or null: default 24)")


class SemanticMoodRequest(BaseModel):
    """Embedding-only mood search."""
    moods: List[str] = Field(default_factory=list)
    threshold: float = Field(0.7, ge=0.0, le=1.0, description="Minimum similarity")
    limit: int = Field(50, ge=1, le=200)


# ============================================================================
# Response Models
# ============================================================================

class SourceTerms(BaseModel):
    """Terms contributed by one source (an analyzer or the text query)."""
    source: str
    terms: List[str] = Field(default_factory=list)


class SearchDebug(BaseModel):
    """Provenance of the terms behind a result set."""
    query: str = ""
    query_terms: Optional[SourceTerms] = None
    vision: Optional[List[SourceTerms]] = None
    combined: List[str] = Field(default_factory=list)
    candidates_scanned: int = 0
    term_match_counts: Dict[str, int] = Field(default_factory=dict)
    price_range: Optional[PriceRange] = None
    semantic_matches_added: Optional[int] = None
    timing: Dict[str, int] = Field(default_factory=dict, description="Timing breakdown in ms")


class SearchResponse(BaseModel):
    """Filtered listings plus debug provenance."""
    listings: List[Listing]
    total: int
    mode: SearchMode
    debug: SearchDebug


class SemanticMoodResponse(BaseModel):
    listings: List[Dict[str, Any]]


class MatchDetail(BaseModel):
    selected_mood: str
    normalized_mood: str
    variants: List[str]
    matched: bool
    matched_in: Optional[Dict[str, List[str]]] = None


class MoodFilterListing(BaseModel):
    id: str
    title: Optional[str] = None
    styles: Any = None
    moods: Any = None
    intents: Any = None
    styles_normalized: List[str] = Field(default_factory=list)
    moods_normalized: List[str] = Field(default_factory=list)
    intents_normalized: List[str] = Field(default_factory=list)


class MoodFilterMatch(BaseModel):
    listing: MoodFilterListing
    match_details: List[MatchDetail]
    all_matched: bool


class MoodFilterSample(MoodFilterListing):
    all_fields: List[str] = Field(default_factory=list)


class MoodFilterDebugResponse(BaseModel):
    """Per-listing diagnostics for the mood-filter debug endpoint."""
    selected_moods: List[str]
    total_listings: int
    matches_found: int
    matches: List[MoodFilterMatch]
    sample_non_matches: List[MoodFilterSample]
    debug: Dict[str, Any] = Field(default_factory=dict)


class FacetsResponse(BaseModel):
    vibes: List[str] = Field(default_factory=list)
    purposes: List[str] = Field(default_factory=list)
    styles: List[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
