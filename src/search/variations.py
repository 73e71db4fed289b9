"""
Mood-wheel variation table.

Maps each facet a buyer can pick on the mood wheel (vibes, purposes,
styles) to the surface forms sellers and the vision taggers actually
write into listing tags: plurals, abbreviations, near-synonyms.

The table is built once at import time and never mutated. Matching treats
every facet as a flat string; the categories only exist for the UI menu.

Architecture:
    facet picked  -->  variations_for()  -->  TermGroup(term, variants)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple

from search.normalize import normalize_term


# ---------------------------------------------------------------------------
# Authored facet data
# ---------------------------------------------------------------------------

VIBES: Dict[str, List[str]] = {
    "whimsical": ["whimsical", "whimsy", "playful", "fun", "quirky"],
    "impulsive": ["impulsive", "impulse", "spontaneous"],
    "wild": ["wild", "bold", "daring"],
    "nostalgic": ["nostalgic", "nostalgia", "retro", "vintage"],
    "quirky": ["quirky", "quirks", "unique", "unusual"],
    "chill": ["chill", "chilled", "calm", "calming", "peaceful", "serene"],
    "party on": ["party on", "party", "party-on", "celebration", "celebrate", "festive"],
    "warm heart": ["warm heart", "warm-heart", "warm", "heart", "heartfelt", "cozy"],
}

PURPOSES: Dict[str, List[str]] = {
    "gift": ["gift", "gifts", "gifting", "present", "presents"],
    "indulgence": ["indulgence", "indulge", "treat", "treat yourself", "selfish", "for me"],
    "practical": ["practical", "functional", "utility", "useful"],
    "collectibles": ["collectibles", "collectible", "collection", "collector", "collecting"],
    "accessorize": ["accessorize", "accessories", "accessory", "accessorizing"],
    "celebrate": ["celebrate", "celebration", "party", "festive", "special occasion"],
    "homestyle": [
        "homestyle", "home-style", "home", "decor", "home decor",
        "home decoration", "decorative",
    ],
    "dine in": [
        "dine in", "dine-in", "dinein", "dining", "tableware", "serveware",
        "dinnerware", "kitchen", "cookware",
    ],
}

STYLES: Dict[str, List[str]] = {
    "antique": ["antique", "antiques", "vintage", "classic"],
    "rustic": ["rustic", "country", "farmhouse", "natural", "earthy"],
    "retro": ["retro", "vintage", "nostalgic", "classic"],
    "vintage": ["vintage", "antique", "retro", "classic", "old"],
    "modern": ["modern", "contemporary", "sleek", "minimalist"],
    "mcm": [
        "mcm", "mid-century modern", "midcentury modern", "mid century modern",
        "mid-century", "midcentury",
    ],
    "kitschy": ["kitschy", "kitsch", "tacky", "campy", "funky"],
    "elegant": ["elegant", "elegance", "sophisticated", "refined", "classy"],
}

FACET_CATEGORIES: Dict[str, Dict[str, List[str]]] = {
    "vibes": VIBES,
    "purposes": PURPOSES,
    "styles": STYLES,
}


def _dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for value in values:
        if value and value not in seen:
            seen[value] = None
    return tuple(seen)


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MoodVariationTable:
    """Immutable facet -> variants mapping.

    entries:     normalized facet name -> normalized variants (facet first)
    categories:  UI category -> facet names in menu order
    """
    entries: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    categories: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Iterable[str]],
        categories: Mapping[str, Iterable[str]] | None = None,
    ) -> "MoodVariationTable":
        """Build a table, normalizing keys and values.

        Facets that appear more than once (e.g. "celebrate" in two
        categories' synonym lists) keep the union of their variants.
        """
        merged: Dict[str, List[str]] = {}
        for facet, variants in mapping.items():
            key = normalize_term(facet)
            if not key:
                continue
            bucket = merged.setdefault(key, [key])
            bucket.extend(normalize_term(v) for v in variants)

        entries = {key: _dedupe(values) for key, values in merged.items()}
        cats = {
            name: _dedupe(normalize_term(f) for f in facets)
            for name, facets in (categories or {}).items()
        }
        return cls(entries=MappingProxyType(entries), categories=MappingProxyType(cats))

    def __contains__(self, facet: object) -> bool:
        return isinstance(facet, str) and normalize_term(facet) in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def variations_for(self, facet: str) -> List[str]:
        """Return the accepted surface forms for a facet.

        The normalized facet always comes first. A facet that is not in the
        table yields just itself; an empty facet yields nothing.
        """
        key = normalize_term(facet)
        if not key:
            return []
        return list(self.entries.get(key, (key,)))

    def facets(self) -> Dict[str, List[str]]:
        """Facet names grouped by UI category."""
        return {name: list(facets) for name, facets in self.categories.items()}


def build_default_table() -> MoodVariationTable:
    mapping: Dict[str, List[str]] = {}
    for facets in FACET_CATEGORIES.values():
        for facet, variants in facets.items():
            mapping.setdefault(facet, []).extend(variants)
    return MoodVariationTable.from_mapping(
        mapping,
        categories={name: list(facets) for name, facets in FACET_CATEGORIES.items()},
    )


DEFAULT_VARIATIONS: MoodVariationTable = build_default_table()
