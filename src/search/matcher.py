"""
Conjunctive term-group matcher.

A listing's searchable fields are its styles, moods and intents tags.
A TermGroup matches when any of its variants matches any field, either
exactly or as a whole word/phrase inside the field. A listing passes a
query only when every group matches; there is no partial credit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Pattern, Sequence

from config.constants import TAG_FIELDS
from search.normalize import normalize_tag_column, normalize_term
from search.term_groups import TermGroup


@dataclass(frozen=True)
class MatchResult:
    """How one term group fared against one listing."""
    selected_mood: str
    normalized_mood: str
    variants: List[str]
    matched: bool
    matched_in: Optional[Dict[str, List[str]]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_mood": self.selected_mood,
            "normalized_mood": self.normalized_mood,
            "variants": list(self.variants),
            "matched": self.matched,
            "matched_in": self.matched_in,
        }


@dataclass(frozen=True)
class ListingMatch:
    listing: Mapping[str, Any]
    details: List[MatchResult]
    all_matched: bool


@lru_cache(maxsize=4096)
def _boundary_pattern(variant: str) -> Pattern[str]:
    return re.compile(r"\b" + re.escape(variant) + r"\b", re.IGNORECASE)


def variant_matches(variant: str, value: str) -> bool:
    """True if `variant` equals `value` or occurs in it as a whole word/phrase.

    Both sides are compared in normalized form, so "art" never matches
    "cart" while "kitchen" matches "Kitchen Decor".
    """
    variant = normalize_term(variant)
    field_value = normalize_term(value)
    if not variant or not field_value:
        return False
    if variant == field_value:
        return True
    return _boundary_pattern(variant).search(field_value) is not None


def listing_tags(listing: Mapping[str, Any]) -> Dict[str, List[str]]:
    """Clean tag lists for every tag column of a listing row."""
    return {name: normalize_tag_column(listing.get(name)) for name in TAG_FIELDS}


def searchable_fields(listing: Mapping[str, Any]) -> List[str]:
    """styles + moods + intents, cleaned and lower-cased."""
    tags = listing_tags(listing)
    return [value.lower() for name in TAG_FIELDS for value in tags[name]]


def match_group(
    listing: Mapping[str, Any],
    group: TermGroup,
    label: Optional[str] = None,
    tags: Optional[Mapping[str, List[str]]] = None,
) -> MatchResult:
    """
    Evaluate one term group against one listing.

    Args:
        listing: Listing row (dict or Listing model dump).
        group: The term group to test.
        label: What the user actually picked/typed, for diagnostics.
            Defaults to the group's canonical term.
        tags: Pre-normalized tag columns, to avoid re-cleaning per group.

    Returns:
        MatchResult; matched_in is None unless the group matched.
    """
    tags = tags if tags is not None else listing_tags(listing)
    variants = list(group.variants)

    matched_in = {
        name: [value for value in tags.get(name, []) if any(variant_matches(v, value) for v in variants)]
        for name in TAG_FIELDS
    }
    matched = any(matched_in.values())

    return MatchResult(
        selected_mood=label if label is not None else group.term,
        normalized_mood=group.term,
        variants=variants,
        matched=matched,
        matched_in=matched_in if matched else None,
    )


def evaluate_listing(
    listing: Mapping[str, Any],
    groups: Sequence[TermGroup],
    labels: Optional[Mapping[str, str]] = None,
) -> ListingMatch:
    """
    Evaluate every group against a listing.

    Args:
        listing: Listing row.
        groups: Merged term groups (non-empty; browse mode is handled by
            the caller).
        labels: Optional canonical term -> user-facing label map.
    """
    tags = listing_tags(listing)
    labels = labels or {}
    details = [
        match_group(listing, group, label=labels.get(group.term), tags=tags)
        for group in groups
    ]
    return ListingMatch(
        listing=listing,
        details=details,
        all_matched=bool(details) and all(d.matched for d in details),
    )


def filter_listings(
    listings: Sequence[Mapping[str, Any]],
    groups: Sequence[TermGroup],
) -> List[ListingMatch]:
    """Keep listings that satisfy every group, preserving input order."""
    evaluated = (evaluate_listing(listing, groups) for listing in listings)
    return [match for match in evaluated if match.all_matched]
