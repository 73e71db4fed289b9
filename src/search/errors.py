"""
Search error taxonomy.

StorageError propagates to the HTTP layer as a 500. AnalyzerError,
TermExtractionError and EmbeddingError are raised by collaborators and
absorbed by ListingSearchService where the search can continue without
them.
"""

from typing import Optional


class SearchError(Exception):
    """Base class for search failures surfaced to the API layer."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class StorageError(SearchError):
    """Listing store unreachable or returned a database error."""


class AnalyzerError(SearchError):
    """A vision analyzer call failed or returned an unusable payload."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}", stage="vision")
        self.source = source


class TermExtractionError(SearchError):
    """LLM term extraction failed; callers fall back to local extraction."""


class EmbeddingError(SearchError):
    """Embedding generation failed."""
