"""
Vision analyzers for photo search.

Each analyzer turns an image URL into tag-like labels (attributes,
styles, moods, intents, category, title). They are independent: the
search service fires all configured analyzers at once and keeps whatever
subset succeeds (see analyze_all).

Providers:
    OpenAIVisionAnalyzer  - chat completions with an image part (openai SDK)
    ClaudeVisionAnalyzer  - Messages API with a URL image block (anthropic SDK)
    GoogleVisionAnalyzer  - Cloud Vision images:annotate over httpx
"""

import asyncio
import json
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import BaseModel, Field, field_validator

from config.constants import GOOGLE_LABEL_MIN_SCORE, GOOGLE_MAX_ATTRIBUTES
from config.settings import Settings
from core.logging import get_logger
from search.errors import AnalyzerError
from search.normalize import normalize_tag_column

logger = get_logger(__name__)


# =============================================================================
# Analysis Schema
# =============================================================================

class VisionAnalysis(BaseModel):
    """Labels extracted from one image by one provider."""
    title: Optional[str] = None
    category: Optional[str] = None
    attributes: List[str] = Field(default_factory=list)
    styles: List[str] = Field(default_factory=list)
    moods: List[str] = Field(default_factory=list)
    intents: List[str] = Field(default_factory=list)

    @field_validator("attributes", "styles", "moods", "intents", mode="before")
    @classmethod
    def coerce_tags(cls, v):
        return normalize_tag_column(v)

    @field_validator("title", "category", mode="before")
    @classmethod
    def coerce_text(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None


@dataclass(frozen=True)
class AnalyzerOutcome:
    """Settled result of one analyzer call: analysis or error, never both."""
    source: str
    analysis: Optional[VisionAnalysis] = None
    error: Optional[str] = None
    skipped: bool = False


_VISION_PROMPT = """You are tagging a photo for a secondhand marketplace (vintage, home goods, collectibles, fashion).

Describe what the item IS, not what it is made of, unless the material identifies it.
Do not claim rarity, authenticity or a maker without a visible mark.

Return ONLY a JSON object:
{
  "title": "short buyer-facing name of the item",
  "category": "one of: Kitchen & Dining, Home Decor, Collectibles, Books & Media, Furniture, Art, Electronics, Fashion, Jewelry, Toys & Games, Sports & Outdoors, General",
  "attributes": ["3-6 distinctive object/feature words"],
  "styles": ["style tags such as vintage, retro, mid-century modern, rustic, modern, antique, kitschy, elegant"],
  "moods": ["mood tags such as whimsical, nostalgic, cozy, quirky, chill, festive"],
  "intents": ["purpose tags such as gift, home decor, collectible, practical, dining, accessory"]
}"""

_CODE_FENCE = re.compile(r"```(?:json)?")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def parse_json_payload(raw: Optional[str]) -> Dict[str, Any]:
    """
    Pull a JSON object out of an LLM reply.

    Tolerates markdown code fences, prose around the object and trailing
    commas. Raises ValueError if no object can be decoded.
    """
    if not raw:
        raise ValueError("empty response")
    content = _CODE_FENCE.sub("", raw).strip()
    first, last = content.find("{"), content.rfind("}")
    if first == -1 or last == -1 or last < first:
        raise ValueError("no JSON object in response")
    content = _TRAILING_COMMA.sub(r"\1", content[first:last + 1])
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError("response is not a JSON object")
    return data


# =============================================================================
# Analyzers
# =============================================================================

class VisionAnalyzer:
    """Base class: subclasses set `source` and implement _analyze()."""

    source: str = "unknown"

    @property
    def configured(self) -> bool:
        return True

    async def analyze(self, image_url: str, hint: Optional[str] = None) -> VisionAnalysis:
        t_start = time.time()
        try:
            analysis = await self._analyze(image_url, hint)
        except AnalyzerError:
            raise
        except Exception as e:
            raise AnalyzerError(self.source, f"{type(e).__name__}: {e}") from e

        logger.info(
            "Vision analysis completed",
            source=self.source,
            title=analysis.title,
            category=analysis.category,
            tag_count=len(analysis.attributes) + len(analysis.styles)
            + len(analysis.moods) + len(analysis.intents),
            latency_ms=int((time.time() - t_start) * 1000),
        )
        return analysis

    async def _analyze(self, image_url: str, hint: Optional[str]) -> VisionAnalysis:
        raise NotImplementedError


def _prompt_with_hint(hint: Optional[str]) -> str:
    if hint:
        return f"{_VISION_PROMPT}\n\nThe buyer described what they want as: \"{hint}\""
    return _VISION_PROMPT


class OpenAIVisionAnalyzer(VisionAnalyzer):
    source = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o", timeout: float = 30.0, client: Any = None):
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._api_key) or self._client is not None

    @property
    def client(self):
        """Lazy-load the async OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    async def _analyze(self, image_url: str, hint: Optional[str]) -> VisionAnalysis:
        response = await self.client.chat.completions.create(
            model=self._model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": _prompt_with_hint(hint)},
                        {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
                    ],
                },
            ],
            temperature=0.2,
            max_tokens=500,
        )
        raw = response.choices[0].message.content
        return VisionAnalysis(**parse_json_payload(raw))


class ClaudeVisionAnalyzer(VisionAnalyzer):
    source = "claude"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        timeout: float = 30.0,
        client: Any = None,
    ):
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._api_key) or self._client is not None

    @property
    def client(self):
        """Lazy-load the async Anthropic client."""
        if self._client is None:
            from anthropic import AsyncAnthropic
            self._client = AsyncAnthropic(api_key=self._api_key, timeout=self._timeout)
        return self._client

    async def _analyze(self, image_url: str, hint: Optional[str]) -> VisionAnalysis:
        response = await self.client.messages.create(
            model=self._model,
            max_tokens=600,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "image", "source": {"type": "url", "url": image_url}},
                        {"type": "text", "text": _prompt_with_hint(hint)},
                    ],
                },
            ],
        )
        text = "".join(block.text for block in response.content if block.type == "text")
        return VisionAnalysis(**parse_json_payload(text))


_GOOGLE_CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Kitchen & Dining": ["dishware", "tableware", "cookware", "glassware", "bowl", "plate", "cup", "mug", "kitchen"],
    "Home Decor": ["vase", "lamp", "picture frame", "sculpture", "candle", "mirror", "decor"],
    "Collectibles": ["figurine", "toy", "doll", "statue", "antique", "vintage"],
    "Books & Media": ["book", "vinyl record", "cd", "dvd", "magazine"],
    "Furniture": ["chair", "table", "desk", "cabinet", "shelf"],
    "Art": ["painting", "artwork", "print", "canvas", "art"],
    "Electronics": ["camera", "radio", "clock", "telephone"],
    "Fashion": ["handbag", "jewelry", "watch", "scarf", "hat", "clothing"],
}


def infer_category(labels: Sequence[str]) -> str:
    """First category whose keywords appear in any label, else "General"."""
    lowered = [label.lower() for label in labels]
    for category, keywords in _GOOGLE_CATEGORY_KEYWORDS.items():
        for label in lowered:
            if any(keyword in label for keyword in keywords):
                return category
    return "General"


class GoogleVisionAnalyzer(VisionAnalyzer):
    source = "google"

    API_URL = "https://vision.googleapis.com/v1/images:annotate"

    def __init__(
        self,
        api_key: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self._timeout = timeout
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def _analyze(self, image_url: str, hint: Optional[str]) -> VisionAnalysis:
        payload = {
            "requests": [{
                "image": {"source": {"imageUri": image_url}},
                "features": [
                    {"type": "LABEL_DETECTION", "maxResults": 10},
                    {"type": "OBJECT_LOCALIZATION", "maxResults": 5},
                    {"type": "WEB_DETECTION", "maxResults": 10},
                ],
            }],
        }
        data = await _post_json(
            f"{self.API_URL}?key={self._api_key}",
            payload,
            {"content-type": "application/json"},
            self._timeout,
            self._http_client,
        )
        return self.parse_annotations(data)

    @staticmethod
    def parse_annotations(data: Dict[str, Any]) -> VisionAnalysis:
        """Map an images:annotate response onto VisionAnalysis."""
        responses = data.get("responses") or [{}]
        first = responses[0] or {}
        if first.get("error"):
            raise AnalyzerError("google", first["error"].get("message", "annotate error"))

        labels = [
            (label.get("description", ""), float(label.get("score", 0)))
            for label in first.get("labelAnnotations") or []
        ]
        objects = [
            obj.get("name", "")
            for obj in first.get("localizedObjectAnnotations") or []
            if obj.get("name")
        ]
        best_guesses = [
            guess.get("label", "")
            for guess in (first.get("webDetection") or {}).get("bestGuessLabels") or []
            if guess.get("label")
        ]

        attributes = [
            description for description, score in labels
            if description and score > GOOGLE_LABEL_MIN_SCORE
        ][:GOOGLE_MAX_ATTRIBUTES]

        title = best_guesses[0] if best_guesses else (objects[0] if objects else None)
        category = infer_category([d for d, _ in labels] + objects)

        return VisionAnalysis(title=title, category=category, attributes=attributes)


async def _post_json(
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
    http_client: Optional[httpx.AsyncClient],
) -> Dict[str, Any]:
    if http_client is not None:
        response = await http_client.post(url, json=payload, headers=headers, timeout=timeout)
    else:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, json=payload, headers=headers)
    response.raise_for_status()
    return response.json()


# =============================================================================
# Fan-out
# =============================================================================

async def analyze_all(
    analyzers: Sequence[VisionAnalyzer],
    image_url: str,
    hint: Optional[str] = None,
) -> List[AnalyzerOutcome]:
    """
    Run every configured analyzer concurrently and wait for all of them.

    One analyzer failing or timing out never cancels or fails the others;
    its outcome simply carries the error. Unconfigured analyzers are not
    called and come back as skipped. Outcomes keep the input order.
    """
    active = [a for a in analyzers if a.configured]
    results = await asyncio.gather(
        *(a.analyze(image_url, hint) for a in active),
        return_exceptions=True,
    )
    by_source: Dict[int, AnalyzerOutcome] = {}
    for analyzer, result in zip(active, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                # CancelledError / KeyboardInterrupt must not be swallowed
                raise result
            logger.warning(
                "Vision analyzer failed",
                source=analyzer.source,
                error=str(result),
                error_type=type(result).__name__,
            )
            by_source[id(analyzer)] = AnalyzerOutcome(source=analyzer.source, error=str(result))
        else:
            by_source[id(analyzer)] = AnalyzerOutcome(source=analyzer.source, analysis=result)

    return [
        by_source.get(id(a), AnalyzerOutcome(source=a.source, skipped=True))
        for a in analyzers
    ]


def build_default_analyzers(settings: Settings) -> List[VisionAnalyzer]:
    """One analyzer per provider, configured from settings."""
    timeout = settings.vision_timeout_seconds
    return [
        OpenAIVisionAnalyzer(settings.openai_api_key, settings.openai_vision_model, timeout),
        ClaudeVisionAnalyzer(settings.anthropic_api_key, settings.anthropic_vision_model, timeout),
        GoogleVisionAnalyzer(settings.google_vision_api_key, timeout),
    ]
