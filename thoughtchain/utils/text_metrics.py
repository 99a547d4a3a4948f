"""Token-overlap and vocabulary-diversity metrics for thought text.

Pure lexical heuristics: no semantic understanding is attempted. Used by
revision validation, stagnation detection and burst validation.
"""

from __future__ import annotations

import re
from collections import OrderedDict

# Short tokens kept despite the length > 2 filter
TECHNICAL_SHORT_TERMS: frozenset[str] = frozenset(
    {
        "api",
        "ui",
        "db",
        "id",
        "io",
        "os",
        "ip",
        "url",
        "css",
        "sql",
        "xml",
        "jwt",
        "mcp",
        "cli",
        "sdk",
        "cdn",
        "dns",
        "ssh",
        "ssl",
        "tls",
        "http",
        "json",
        "yaml",
        "toml",
    }
)

# Filler phrases and stop words (English + Russian) removed before comparison
FILLER_PHRASES: tuple[str, ...] = (
    # English filler phrases
    "in this step",
    "i will",
    "let me",
    "now i",
    "first",
    "next",
    "then",
    "carefully",
    "analyze",
    "consider",
    "looking at",
    "examining",
    "reviewing",
    "based on",
    "according to",
    "as we can see",
    "it appears that",
    # English stop words
    "the",
    "a",
    "an",
    "of",
    "is",
    "to",
    "and",
    "or",
    "but",
    "in",
    "on",
    "at",
    "for",
    "with",
    "this",
    "that",
    "it",
    "be",
    "are",
    "was",
    "were",
    "been",
    # Russian stop words
    "и",
    "в",
    "на",
    "с",
    "по",
    "к",
    "у",
    "о",
    "из",
    "за",
    "от",
    "до",
    "то",
    "что",
    "это",
    "как",
    "для",
    "не",
    "но",
    "да",
    "же",
    "ли",
    "бы",
)

# Longest alternatives first so multi-word phrases win over their parts
_FILLER_PATTERN = re.compile(
    r"\b(?:"
    + "|".join(re.escape(p) for p in sorted(FILLER_PHRASES, key=len, reverse=True))
    + r")\b",
    re.IGNORECASE,
)
_WHITESPACE = re.compile(r"\s+")

WORD_CACHE_LIMIT = 50
_word_cache: OrderedDict[str, frozenset[str]] = OrderedDict()


def _qualifies(token: str) -> bool:
    return len(token) > 2 or token in TECHNICAL_SHORT_TERMS


def normalize_for_comparison(text: str) -> str:
    """Lowercase, strip filler phrases and stop words, collapse whitespace."""
    stripped = _FILLER_PATTERN.sub("", text.lower())
    return _WHITESPACE.sub(" ", stripped).strip()


def clear_word_cache() -> int:
    """Clear the token-set cache. Returns number of items cleared."""
    count = len(_word_cache)
    _word_cache.clear()
    return count


def get_cache_stats() -> dict[str, int]:
    """Get token-set cache statistics."""
    return {"size": len(_word_cache), "max_size": WORD_CACHE_LIMIT}


def word_set(text: str) -> frozenset[str]:
    """Return the qualifying token set of ``text``, memoized by raw text.

    The cache is FIFO-bounded to ``WORD_CACHE_LIMIT`` entries.
    """
    cached = _word_cache.get(text)
    if cached is not None:
        return cached

    words = frozenset(
        w for w in normalize_for_comparison(text).split(" ") if w and _qualifies(w)
    )

    if len(_word_cache) >= WORD_CACHE_LIMIT:
        _word_cache.popitem(last=False)
    _word_cache[text] = words
    return words


def jaccard_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity (0-1) between the token sets of two texts.

    Returns 0.0 when either side has no qualifying tokens.
    """
    words1 = word_set(text1)
    words2 = word_set(text2)
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / len(words1 | words2)


def word_entropy(text: str) -> float:
    """Vocabulary diversity (0-1): distinct / total qualifying tokens.

    Computed over the raw lower-cased text, without filler stripping.
    """
    words = [w for w in text.lower().split() if _qualifies(w)]
    if not words:
        return 0.0
    return len(set(words)) / len(words)
