"""
Pytest configuration and shared fixtures for the search service tests.
"""
import os
import sys
from typing import Any, Dict, List, Optional, Sequence

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

# Settings require a Supabase project; unit tests never talk to it
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-key")

from search.models import PriceRange


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

def make_listing(listing_id: str, **fields: Any) -> Dict[str, Any]:
    """Listing row as returned by the listings table."""
    row = {
        "id": listing_id,
        "title": f"Listing {listing_id}",
        "description": None,
        "category": "Home",
        "status": "active",
        "price": 25.0,
        "styles": [],
        "moods": [],
        "intents": [],
    }
    row.update(fields)
    return row


@pytest.fixture
def sample_listings() -> List[Dict[str, Any]]:
    """Newest-first listing rows with a mix of tag storage formats."""
    return [
        make_listing(
            "L1",
            title="Hand-painted teapot",
            styles=["Vintage", "Kitschy"],
            moods=["Whimsical"],
            intents=["Gift"],
        ),
        make_listing(
            "L2",
            title="Brass candle holders",
            styles='["mid-century modern"]',
            moods='["cozy", "warm"]',
            intents="home decor, gift",
        ),
        make_listing(
            "L3",
            title="Retro diner mug",
            styles=["Retro"],
            moods=["Playful"],
            intents=["Indulgence"],
        ),
        make_listing(
            "L4",
            title="Cart-shaped planter",
            styles=["Cart"],
            moods=["Chill"],
            intents=None,
        ),
        make_listing(
            "L5",
            title="Party streamers",
            styles=None,
            moods=["Party-On", "festive"],
            intents=["Celebration"],
        ),
    ]


# ============================================================================
# Fixtures: Fakes
# ============================================================================

class FakeListingStore:
    """In-memory ListingStore. Rows are treated as already newest-first."""

    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        error: Optional[Exception] = None,
        embedding_matches: Optional[List[Dict[str, Any]]] = None,
    ):
        self.rows = list(rows or [])
        self.error = error
        self.embedding_matches = list(embedding_matches or [])
        self.fetch_calls: List[Dict[str, Any]] = []
        self.match_calls: List[Dict[str, Any]] = []

    async def fetch_active(
        self,
        limit: int,
        category: Optional[str] = None,
        columns: str = "*",
        price_range: Optional[PriceRange] = None,
    ):
        self.fetch_calls.append({
            "limit": limit,
            "category": category,
            "columns": columns,
            "price_range": price_range,
        })
        if self.error is not None:
            raise self.error
        rows = [r for r in self.rows if r.get("status", "active") == "active"]
        if price_range is not None:
            rows = [r for r in rows if price_range.contains(r.get("price"))]
        return rows[:limit]

    async def fetch_by_ids(self, ids: Sequence[str]):
        by_id = {str(r["id"]): r for r in self.rows}
        return [by_id[i] for i in ids if i in by_id]

    async def match_by_embedding(self, embedding: Sequence[float], threshold: float, count: int):
        self.match_calls.append({"threshold": threshold, "count": count})
        if self.error is not None:
            raise self.error
        return self.embedding_matches[:count]


@pytest.fixture
def fake_store(sample_listings) -> FakeListingStore:
    return FakeListingStore(sample_listings)


@pytest.fixture
def store_factory():
    """Build a FakeListingStore with custom rows / errors."""
    return FakeListingStore


@pytest.fixture
def listing_factory():
    return make_listing


@pytest.fixture
def test_settings():
    """Settings without API keys, so every LLM/vision feature is off."""
    from config.settings import get_settings_for_testing
    return get_settings_for_testing()


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "supabase: marks tests that require Supabase")


def pytest_collection_modifyitems(config, items):
    """Auto-skip Supabase tests without real credentials."""
    skip_supabase = pytest.mark.skip(reason="Supabase tests require credentials")
    supabase_url = os.getenv("SUPABASE_URL", "")

    for item in items:
        if "supabase" in item.keywords and "test.supabase.co" in supabase_url:
            item.add_marker(skip_supabase)
