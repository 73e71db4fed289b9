"""
Term groups: the unit of matching.

Every input source (typed query, voice transcript, vision labels, mood
wheel facets) is turned into TermGroups and folded together with
merge_groups(), so all search paths share one matching pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from search.normalize import normalize_term
from search.variations import DEFAULT_VARIATIONS, MoodVariationTable


@dataclass(frozen=True)
class TermGroup:
    """A canonical term plus every surface form that should count as it.

    `term` is always variants[0].
    """
    term: str
    variants: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        term = normalize_term(self.term)
        normalized = [term] + [normalize_term(v) for v in self.variants]
        seen: Dict[str, None] = {}
        for value in normalized:
            if value and value not in seen:
                seen[value] = None
        object.__setattr__(self, "term", term)
        object.__setattr__(self, "variants", tuple(seen))

    @classmethod
    def single(cls, term: str) -> "TermGroup":
        return cls(term=term, variants=(term,))

    def to_dict(self) -> Dict[str, Any]:
        return {"term": self.term, "variants": list(self.variants)}


def build_groups(terms: Iterable[Optional[str]]) -> List[TermGroup]:
    """One single-variant group per non-empty normalized term.

    Used for free text, voice transcripts and vision labels. Terms that
    normalize to the same key collapse into one group.
    """
    groups = []
    for raw in terms:
        term = normalize_term(raw)
        if term:
            groups.append(TermGroup.single(term))
    return merge_groups(groups)


def merge_groups(groups: Iterable[TermGroup]) -> List[TermGroup]:
    """Fold groups sharing a canonical term into one.

    Variants are unioned; keys keep first-seen order so debug output is
    reproducible. The key set and each key's variant set do not depend on
    how the input is split across calls or ordered.
    """
    merged: Dict[str, Dict[str, None]] = {}
    for group in groups:
        key = normalize_term(group.term)
        if not key:
            continue
        bucket = merged.setdefault(key, {key: None})
        for variant in group.variants:
            normalized = normalize_term(variant)
            if normalized:
                bucket[normalized] = None
    return [TermGroup(term=key, variants=tuple(variants)) for key, variants in merged.items()]


def groups_for_facets(
    facets: Iterable[str],
    table: MoodVariationTable = DEFAULT_VARIATIONS,
) -> List[TermGroup]:
    """One group per selected mood-wheel facet, expanded through the table."""
    groups = []
    for facet in facets:
        variants = table.variations_for(facet)
        if variants:
            groups.append(TermGroup(term=variants[0], variants=tuple(variants)))
    return merge_groups(groups)


def collect_vision_terms(payload: Optional[Mapping[str, Any]]) -> List[str]:
    """Flatten a vision analysis payload into an ordered, unique term list.

    Order: attributes, styles, moods, intents, category, title.
    """
    if not payload:
        return []

    terms: Dict[str, None] = {}

    def _add(value: Any) -> None:
        if isinstance(value, str) and value.strip():
            terms.setdefault(value.strip(), None)

    for key in ("attributes", "styles", "moods", "intents"):
        values = payload.get(key) or []
        if isinstance(values, str):
            values = [values]
        for value in values:
            _add(value)
    _add(payload.get("category"))
    _add(payload.get("title"))

    return list(terms)


def term_list(groups: Sequence[TermGroup]) -> List[str]:
    return [group.term for group in groups]
