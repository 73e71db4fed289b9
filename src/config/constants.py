"""
Search constants.

Values that don't change based on environment but are referenced across
the search package (listing columns, vision thresholds, debug sizes).
"""

from typing import FrozenSet, Tuple


# =============================================================================
# Listing Columns
# =============================================================================

# Tag columns matched against term groups, in searchable-field order
TAG_FIELDS: Tuple[str, ...] = ("styles", "moods", "intents")

# Columns the mood-filter debug endpoint needs
DEBUG_LISTING_COLUMNS = "id, title, description, category, styles, moods, intents, status"


# =============================================================================
# Vision Analyzers
# =============================================================================

# Google label annotations below this score are ignored
GOOGLE_LABEL_MIN_SCORE = 0.7
GOOGLE_MAX_ATTRIBUTES = 5


# =============================================================================
# Mood Filter Debug
# =============================================================================

DEBUG_MAX_MATCHES = 10
DEBUG_SAMPLE_NON_MATCHES = 5
DEBUG_TITLE_CHARS = 50


# =============================================================================
# Local Term Extraction
# =============================================================================

# Tokens of this length or shorter are dropped by the local extractor
MIN_TOKEN_LENGTH = 2

STOPWORDS: FrozenSet[str] = frozenset({
    "a", "an", "and", "any", "are", "for", "from", "her", "him", "his",
    "i", "in", "is", "it", "its", "looking", "me", "my", "myself", "of",
    "on", "or", "our", "she", "show", "some", "something", "that", "the",
    "their", "them", "they", "this", "to", "under", "want", "was", "we",
    "with", "you", "your", "find", "need", "like", "would", "really", "very",
    "thing", "things", "stuff", "please", "who", "what", "which", "just",
    "dollar", "dollars", "bucks", "price", "priced",
})
