"""
Unit tests for the search API routes.

The search service is swapped for one backed by in-memory fakes via
FastAPI dependency overrides; no network or database is touched.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from config.settings import get_settings_for_testing
from search.errors import EmbeddingError, StorageError
from search.service import ListingSearchService, get_listing_search_service
from search.term_extractor import TermExtractor
from search.vision import VisionAnalysis, VisionAnalyzer


class StubAnalyzer(VisionAnalyzer):

    def __init__(self, source, analysis):
        self.source = source
        self._analysis = analysis

    async def _analyze(self, image_url, hint):
        return self._analysis


@pytest.fixture
def embeddings():
    client = MagicMock()
    client.enabled = False
    client.embed = AsyncMock(return_value=[0.1, 0.2])
    return client


@pytest.fixture
def service(fake_store, embeddings):
    settings = get_settings_for_testing()
    return ListingSearchService(
        store=fake_store,
        analyzers=[StubAnalyzer("claude", VisionAnalysis(styles=["vintage"], intents=["gift"]))],
        extractor=TermExtractor(settings=settings),
        embeddings=embeddings,
        settings=settings,
    )


@pytest.fixture
def client(service):
    from api.app import create_app

    app = create_app()
    app.dependency_overrides[get_listing_search_service] = lambda: service
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =============================================================================
# Visual Search
# =============================================================================

class TestVisualRoute:

    def test_visual_search(self, client):
        response = client.post("/api/search/visual", json={"image_url": "https://img.example.com/1.jpg"})
        assert response.status_code == 200
        data = response.json()
        assert [item["id"] for item in data["listings"]] == ["L1"]
        assert data["mode"] == "filter"
        assert data["debug"]["vision"] == [{"source": "claude", "terms": ["vintage", "gift"]}]

    @pytest.mark.parametrize("body", [{}, {"image_url": ""}, {"image_url": "   "}, {"query": "mug"}])
    def test_image_url_required(self, client, body):
        response = client.post("/api/search/visual", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "image_url is required"}

    def test_invalid_limit(self, client):
        response = client.post("/api/search/visual", json={"image_url": "https://x", "limit": -1})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
        assert "limit" in response.json()["details"]

    @pytest.mark.parametrize("limit", [0, None])
    def test_zero_or_null_limit_uses_default(self, client, fake_store, limit):
        response = client.post("/api/search/visual", json={"image_url": "https://x", "limit": limit})
        assert response.status_code == 200
        assert fake_store.fetch_calls[-1]["limit"] == 24 * 3


# =============================================================================
# Text / Mood Search
# =============================================================================

class TestTextRoutes:

    def test_semantic_search(self, client):
        response = client.post("/api/search/semantic", json={"query": "retro mug"})
        assert response.status_code == 200
        assert response.json()["debug"]["query_terms"] == {"source": "local", "terms": ["retro", "mug"]}

    def test_semantic_query_required(self, client):
        response = client.post("/api/search/semantic", json={"query": "  "})
        assert response.status_code == 400
        assert response.json() == {"error": "query is required"}

    def test_mood_search(self, client):
        response = client.post("/api/search/mood", json={"moods": ["whimsical", "gift"]})
        assert response.status_code == 200
        data = response.json()
        assert [item["id"] for item in data["listings"]] == ["L1"]
        assert data["total"] == 1

    def test_semantic_search_price_phrase(self, client):
        response = client.post("/api/search/semantic", json={"query": "vintage gift under $30"})
        assert response.status_code == 200
        data = response.json()
        assert data["debug"]["query_terms"]["terms"] == ["vintage", "gift"]
        assert data["debug"]["price_range"] == {"min": None, "max": 30.0}
        assert [item["id"] for item in data["listings"]] == ["L1"]

    @pytest.mark.parametrize("moods", [["!!!"], ["whimsical", "  ??  "]])
    def test_mood_without_searchable_text_rejected(self, client, fake_store, moods):
        response = client.post("/api/search/mood", json={"moods": moods})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid moods"
        assert fake_store.fetch_calls == []

    def test_mood_search_empty_body_browses(self, client):
        response = client.post("/api/search/mood", json={"limit": 2})
        assert response.status_code == 200
        assert response.json()["mode"] == "browse"
        assert len(response.json()["listings"]) == 2

    def test_storage_failure_is_500(self, client, fake_store):
        fake_store.error = StorageError("connection refused", stage="fetch_active")
        response = client.post("/api/search/mood", json={"moods": ["gift"]})
        assert response.status_code == 500
        assert response.json() == {"error": "Search failed", "details": "connection refused"}

    def test_request_id_header(self, client):
        response = client.post("/api/search/mood", json={}, headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"


class TestSemanticMoodRoute:

    def test_semantic_mood(self, client, fake_store, embeddings):
        fake_store.embedding_matches = [{"id": "L2", "similarity": 0.8}]
        response = client.post("/api/search/semantic-mood", json={"moods": ["cozy"]})
        assert response.status_code == 200
        assert response.json() == {"listings": [{"id": "L2", "similarity": 0.8}]}
        assert fake_store.match_calls[-1] == {"threshold": 0.7, "count": 50}

    def test_moods_required(self, client):
        response = client.post("/api/search/semantic-mood", json={"moods": []})
        assert response.status_code == 400

    def test_embedding_failure_is_500(self, client, embeddings):
        embeddings.embed.side_effect = EmbeddingError("down", stage="embedding")
        response = client.post("/api/search/semantic-mood", json={"moods": ["cozy"]})
        assert response.status_code == 500
        assert response.json()["error"] == "Search failed"


# =============================================================================
# Facets / Diagnostics
# =============================================================================

class TestFacetsAndDebug:

    def test_facets(self, client):
        response = client.get("/api/search/facets")
        assert response.status_code == 200
        data = response.json()
        assert "whimsical" in data["vibes"]
        assert "gift" in data["purposes"]
        assert "mcm" in data["styles"]

    def test_mood_filter_debug(self, client):
        response = client.get("/api/debug/mood-filter", params={"moods": "Whimsical, gift", "limit": 5})
        assert response.status_code == 200
        data = response.json()
        assert data["selected_moods"] == ["Whimsical", "gift"]
        assert data["matches_found"] == 1
        assert data["matches"][0]["listing"]["id"] == "L1"
        assert data["matches"][0]["all_matched"] is True
        assert len(data["sample_non_matches"]) == 4

    def test_mood_filter_debug_requires_moods(self, client):
        response = client.get("/api/debug/mood-filter")
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "moods parameter is required"
        assert "example" in body

    def test_mood_filter_debug_rejects_punctuation_facet(self, client):
        response = client.get("/api/debug/mood-filter", params={"moods": "whimsical,!!!"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid moods", "moods": ["!!!"]}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "thriftshopper-search"}
