"""
Text normalization for search terms and listing tag columns.

normalize_term() is the single canonical form used for every comparison.
normalize_tag_column() is the single conversion for listing tag columns
(styles, moods, intents), which arrive from storage as real arrays, as
comma-separated strings, or as JSON-ish strings with stray quotes and
brackets left over from upstream serialization.
"""

import json
import re
from typing import Any, List, Optional, Sequence, Union

_NON_TERM_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")

_EDGE_ARTIFACTS = re.compile(r'^[\[\]{}"\'\s]+|[\[\]{}"\'\s]+$')
_INNER_ARTIFACTS = re.compile(r'["\[\]{}]')
_COMMA_NO_SPACE = re.compile(r",(\S)")

TagColumn = Union[Sequence[Any], str, None]


def normalize_term(raw: Optional[str]) -> str:
    """
    Canonicalize a raw string for comparison.

    Lower-cases, replaces anything that is not a letter, digit, whitespace
    or hyphen with a space, collapses whitespace and trims. Idempotent.

    >>> normalize_term("Mid-Century Modern!!")
    'mid-century modern'
    >>> normalize_term("   ")
    ''
    """
    if not raw:
        return ""
    lowered = str(raw).lower()
    spaced = _NON_TERM_CHARS.sub(" ", lowered)
    return _WHITESPACE.sub(" ", spaced).strip()


def clean_tag(tag: Any) -> str:
    """
    Strip serialization artifacts from one tag value.

    Removes surrounding quotes/brackets/braces, drops any left in the
    middle and makes sure inner commas are followed by a space
    ("Home Decor,collectibles" -> "Home Decor, collectibles").
    """
    if tag is None:
        return ""
    cleaned = str(tag).strip()
    cleaned = _EDGE_ARTIFACTS.sub("", cleaned)
    cleaned = _INNER_ARTIFACTS.sub("", cleaned)
    cleaned = _COMMA_NO_SPACE.sub(r", \1", cleaned)
    return cleaned.strip()


def _clean_all(values: Sequence[Any]) -> List[str]:
    cleaned = (clean_tag(v) for v in values)
    return [v for v in cleaned if v]


def normalize_tag_column(value: TagColumn) -> List[str]:
    """
    Convert a stored tag column into a list of clean tag strings.

    Rules, applied in order:
        None / empty            -> []
        list or tuple           -> every element cleaned, empties dropped
        string starting "["     -> parsed as JSON; a JSON array is cleaned
                                   element-wise, anything else falls through
        other string            -> split on "," and cleaned
        other scalar            -> single cleaned element

    Never raises: malformed input degrades to a partial or empty list.

    >>> normalize_tag_column('["Vintage", "Rustic"]')
    ['Vintage', 'Rustic']
    """
    if value is None:
        return []

    if isinstance(value, (list, tuple)):
        return _clean_all(value)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return _clean_all(parsed)
        return _clean_all(text.split(","))

    single = clean_tag(value)
    return [single] if single else []
