"""
Query embeddings for the semantic fallback.

Listings are embedded at publish time with the same model; queries are
embedded here and matched in Postgres by the match RPC (see
SupabaseListingStore.match_by_embedding).
"""

import threading
from typing import Any, List, Optional

from config.settings import Settings, get_settings
from core.logging import get_logger
from search.errors import EmbeddingError

logger = get_logger(__name__)


class EmbeddingClient:
    """Thin async wrapper over the OpenAI embeddings endpoint."""

    def __init__(self, settings: Optional[Settings] = None, client: Any = None):
        settings = settings or get_settings()
        self._api_key = settings.openai_api_key
        self._model = settings.embedding_model
        self._timeout = settings.term_extractor_timeout_seconds
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self._api_key) or self._client is not None

    @property
    def client(self):
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    from openai import AsyncOpenAI
                    self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    async def embed(self, text: str) -> List[float]:
        """
        Embed one text.

        Raises:
            EmbeddingError: not configured, API failure, or empty vector.
        """
        if not self.enabled:
            raise EmbeddingError("OpenAI API key not configured for embeddings", stage="embedding")
        try:
            response = await self.client.embeddings.create(model=self._model, input=text)
            vector = list(response.data[0].embedding)
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}", stage="embedding") from e
        if not vector:
            raise EmbeddingError("Embedding response was empty", stage="embedding")
        return vector
