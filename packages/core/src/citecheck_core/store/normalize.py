"""Text normalization shared by deduplication, indexing and lookup."""

from __future__ import annotations

import re

SIGNIFICANT_WORD_MIN_LENGTH = 4
SIMILARITY_THRESHOLD = 0.7
LOOSE_MATCH_THRESHOLD = 0.5
SLUG_MAX_LENGTH = 50

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_NON_ALNUM_RE = re.compile(r"[\W_]+")
_WHITESPACE_RE = re.compile(r"\s+")
_DOI_PREFIX_RE = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:\s*)", re.IGNORECASE)


def simple_normalize(text: str | None) -> str:
    if not text:
        return ""
    stripped = _PUNCTUATION_RE.sub("", text.lower())
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def aggressive_normalize(text: str | None) -> str:
    if not text:
        return ""
    return _NON_ALNUM_RE.sub("", text.lower())


def significant_words(text: str | None) -> set[str]:
    return {word for word in simple_normalize(text).split() if len(word) >= SIGNIFICANT_WORD_MIN_LENGTH}


def titles_similar(a: str | None, b: str | None, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    aggressive_a = aggressive_normalize(a)
    aggressive_b = aggressive_normalize(b)
    if not aggressive_a or not aggressive_b:
        return False
    if aggressive_a == aggressive_b:
        return True

    simple_a = simple_normalize(a)
    simple_b = simple_normalize(b)
    if simple_a in simple_b or simple_b in simple_a:
        return True

    words_a = significant_words(a)
    words_b = significant_words(b)
    if not words_a or not words_b:
        return False
    overlap = len(words_a & words_b)
    return overlap / min(len(words_a), len(words_b)) >= threshold


def word_match_ratio(query: str | None, candidate: str | None) -> float:
    """Share of the query's significant words that appear in the candidate."""
    query_words = significant_words(query)
    if not query_words:
        return 0.0
    return len(query_words & significant_words(candidate)) / len(query_words)


def surname_of(name: str | None) -> str:
    if not name:
        return ""
    name = name.strip()
    if "," in name:
        surname = name.split(",", 1)[0]
    else:
        parts = name.split()
        surname = parts[-1] if parts else ""
    return simple_normalize(surname)


def has_common_authors(left: list[str], right: list[str]) -> bool:
    left_surnames = {surname_of(name) for name in left}
    right_surnames = {surname_of(name) for name in right}
    return any(len(surname) > 1 for surname in left_surnames & right_surnames)


def normalize_doi(doi: str | None) -> str:
    if not doi:
        return ""
    return _DOI_PREFIX_RE.sub("", doi.strip()).strip().lower()


def normalize_title_key(title: str | None) -> str:
    return " ".join((title or "").lower().split())


def slugify_title(title: str | None) -> str:
    slug = _WHITESPACE_RE.sub("_", simple_normalize(title))[:SLUG_MAX_LENGTH].strip("_")
    return slug or "document"
