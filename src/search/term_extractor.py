"""
LLM-based term extraction for free-text and voice search.

Sits before the matcher and turns a natural-language query such as
"whimsical gift for mom that is vintage" into term groups:

    [{term: "whimsical", variants: ["whimsical", "playful"]},
     {term: "gift", variants: ["gift", "gifting", "present"]},
     {term: "vintage", variants: ["vintage", "retro"]}]

Every returned group must match a listing (conjunctive filter), so the
model is told to emit only terms that describe the wanted item. Price
phrases ("under $50", "between $20 and $40") become a PriceRange that the
listing store applies to the price column, never a term.

Falls back to local extraction when:
- OpenAI API key is not configured
- Feature flag is disabled
- The LLM call fails or times out
- The LLM returns invalid/unparseable JSON
"""

import re
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field

from config.constants import MIN_TOKEN_LENGTH, STOPWORDS
from config.settings import Settings, get_settings
from core.logging import get_logger
from search.errors import TermExtractionError
from search.models import PriceRange, TermSource
from search.normalize import normalize_term
from search.term_groups import TermGroup, build_groups, merge_groups
from search.variations import DEFAULT_VARIATIONS, MoodVariationTable
from search.vision import parse_json_payload

logger = get_logger(__name__)


# =============================================================================
# Extractor Output Schema
# =============================================================================

class ExtractedTerm(BaseModel):
    term: str
    variants: List[str] = Field(default_factory=list)


class ExtractionPlan(BaseModel):
    """Structured output from the LLM."""
    terms: List[ExtractedTerm] = Field(default_factory=list)
    price_range: Optional[PriceRange] = None


@dataclass
class TermExtraction:
    """Term groups for one query plus where they came from."""
    query: str
    term_groups: List[TermGroup] = field(default_factory=list)
    source: TermSource = TermSource.LOCAL
    price_range: Optional[PriceRange] = None

    @property
    def terms(self) -> List[str]:
        return [group.term for group in self.term_groups]


# =============================================================================
# Price Phrases
# =============================================================================

_AMOUNT = r"\$?\s*(?P<{name}>\d+(?:\.\d+)?)(?:\s*(?:dollars?|bucks))?"

_PRICE_BETWEEN = re.compile(
    r"\bbetween\s+" + _AMOUNT.format(name="low") + r"\s*(?:and|to|-)\s*" + _AMOUNT.format(name="high")
)
_PRICE_CEILING = re.compile(
    r"(?:\b(?:under|below|less than|cheaper than|no more than)\s*|<\s*)" + _AMOUNT.format(name="amount")
)
# Floors need a currency marker: "over 50 years old" is not a price
_PRICE_FLOOR = re.compile(
    r"(?:\b(?:over|above|more than|at least)\s*|>\s*)"
    r"(?:\$\s*(?P<amount>\d+(?:\.\d+)?)|(?P<bare>\d+(?:\.\d+)?)\s*(?:dollars?|bucks))"
)


def extract_price_range(query: Optional[str]) -> Tuple[Optional[PriceRange], str]:
    """
    Pull price phrases out of a query.

    Handles "under $50", "less than 100 dollars", "< $20", "over $30" and
    "between $20 and $40".

    Returns:
        (price range or None, lowercased query with the phrases removed)
    """
    text = (query or "").lower()
    low: Optional[float] = None
    high: Optional[float] = None

    match = _PRICE_BETWEEN.search(text)
    if match:
        low, high = sorted((float(match.group("low")), float(match.group("high"))))
        text = _PRICE_BETWEEN.sub(" ", text, count=1)

    match = _PRICE_CEILING.search(text)
    if match:
        high = float(match.group("amount"))
        text = _PRICE_CEILING.sub(" ", text, count=1)

    match = _PRICE_FLOOR.search(text)
    if match:
        low = float(match.group("amount") or match.group("bare"))
        text = _PRICE_FLOOR.sub(" ", text, count=1)

    if low is None and high is None:
        return None, text
    return PriceRange(min=low, max=high), text


# =============================================================================
# System Prompt
# =============================================================================

_SYSTEM_PROMPT = """You are the search assistant of ThriftShopper, a secondhand marketplace for vintage, home goods, collectibles and fashion.

Listings are tagged with three kinds of short tags:
- styles: vintage, retro, antique, mid-century modern, rustic, modern, kitschy, elegant, bohemian, industrial, art deco
- moods: whimsical, nostalgic, cozy, quirky, chill, playful, romantic, festive, serene, bold
- intents: gift, home decor, collectible, practical, dining, accessory, indulgence, celebration

Turn the buyer's query into the smallest set of search terms that a matching listing MUST carry as tags.
Every term you return is required, so:
- Drop filler ("something", "for", "that is", "looking for") and people ("mom", "friend") unless they name an item.
- Keep multi-word tags together ("mid-century modern", "home decor").
- For each term give 1-6 variants: plurals, spellings and close synonyms a seller might have used instead.
- The term itself is always the first variant.
- A price limit ("under $50", "less than 100 dollars", "between $20 and $40") is never a term.
  Put it in "price_range" as dollar amounts {"min": ..., "max": ...}; use null for an open side.
  Leave "price_range" null when the buyer names no price.

Return ONLY JSON:
{"terms": [{"term": "vintage", "variants": ["vintage", "retro", "antique"]}], "price_range": null}

Examples:
- "whimsical gift for mom that is vintage" -> whimsical, gift, vintage
- "cozy mug for myself" -> cozy, mug, indulgence
- "mid century lamp" -> mid-century modern, lamp
- "retro lamp under $100" -> retro, lamp; price_range {"min": null, "max": 100}"""


# =============================================================================
# Term Extractor
# =============================================================================

class TermExtractor:
    """Free-text query -> term groups, via OpenAI with a local fallback."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        variations: MoodVariationTable = DEFAULT_VARIATIONS,
        client: Any = None,
    ):
        settings = settings or get_settings()
        self._api_key = settings.openai_api_key
        self._model = settings.term_extractor_model
        self._timeout = settings.term_extractor_timeout_seconds
        self._enabled = settings.term_extractor_enabled and (bool(self._api_key) or client is not None)
        self._variations = variations
        self._client = client

    @property
    def client(self):
        """Lazy-load the async OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def extract(self, query: Optional[str]) -> TermExtraction:
        """
        Extract term groups and any price range for a query.

        Never raises for LLM problems; those fall back to local extraction.
        An empty query yields no groups. The price range the model reports
        wins over the one parsed locally.
        """
        query = (query or "").strip()
        if not normalize_term(query):
            return TermExtraction(query=query)

        local_price, _ = extract_price_range(query)

        if self._enabled:
            try:
                groups, llm_price = await self._extract_with_llm(query)
                if groups:
                    return TermExtraction(
                        query=query,
                        term_groups=groups,
                        source=TermSource.OPENAI,
                        price_range=llm_price or local_price,
                    )
                logger.info("Term extractor returned no terms, using local extraction", query=query)
            except TermExtractionError as e:
                logger.warning(
                    "Term extraction failed, falling back to local extraction",
                    query=query,
                    error=str(e),
                )
        else:
            logger.debug("Term extractor disabled (no API key or feature flag off)")

        return TermExtraction(
            query=query,
            term_groups=self.extract_locally(query),
            source=TermSource.LOCAL,
            price_range=local_price,
        )

    async def _extract_with_llm(self, query: str) -> Tuple[List[TermGroup], Optional[PriceRange]]:
        t_start = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": query},
                ],
                temperature=0.0,
                max_tokens=400,
                response_format={"type": "json_object"},
            )
            plan = ExtractionPlan(**parse_json_payload(response.choices[0].message.content))
        except Exception as e:
            raise TermExtractionError(f"{type(e).__name__}: {e}", stage="term_extraction") from e

        groups = merge_groups(
            TermGroup(term=t.term, variants=tuple(t.variants))
            for t in plan.terms
        )
        price_range = plan.price_range if plan.price_range and not plan.price_range.is_open else None
        logger.info(
            "Term extractor generated terms",
            query=query,
            terms=[g.term for g in groups],
            price_range=price_range.model_dump() if price_range else None,
            latency_ms=int((time.time() - t_start) * 1000),
        )
        return groups, price_range

    def extract_locally(self, query: str) -> List[TermGroup]:
        """
        Deterministic extraction without an LLM.

        Price phrases are removed first. Known multi-word facet phrases
        ("party on", "mid-century modern") are kept whole; remaining tokens
        are kept unless they are stop-words or too short. Each term becomes
        a single-variant group.
        """
        _, remainder = extract_price_range(query)
        text = normalize_term(remainder)
        phrases: List[str] = []

        # Longest first so "mid century modern" wins over "mid century"
        multi_word = sorted(
            {
                v for facet in self._variations.entries.values() for v in facet
                if " " in v and not all(word in STOPWORDS for word in v.split())
            },
            key=lambda v: (-len(v), v),
        )
        for phrase in multi_word:
            pattern = re.compile(r"\b" + re.escape(phrase) + r"\b")
            if pattern.search(text):
                phrases.append(phrase)
                text = pattern.sub(" ", text)

        tokens = [
            token for token in text.split()
            if len(token) > MIN_TOKEN_LENGTH and token not in STOPWORDS
        ]
        return build_groups(phrases + tokens)
