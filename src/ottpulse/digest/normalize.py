"""Title normalisation, de-duplication and language heuristics."""

import hashlib
import re
from collections.abc import Callable, Iterable
from typing import TypeVar

from ottpulse.digest import LanguageCategory

T = TypeVar("T")

# " – Official Trailer", " — First Look", "| Filmibeat"
_SUFFIX_PATTERNS = (
    re.compile(r"\s+–.*$", re.DOTALL),
    re.compile(r"\s+—.*$", re.DOTALL),
    re.compile(r"\|.*$", re.DOTALL),
)

Classifier = Callable[[str, str, LanguageCategory], LanguageCategory]


def normalize_title(title: str) -> str:
    """Derive the dedupe key for a title."""
    if not title:
        return ""
    key = title
    for pattern in _SUFFIX_PATTERNS:
        key = pattern.sub("", key)
    return " ".join(key.split()).casefold()


def dedupe(items: Iterable[T], key: Callable[[T], str] | None = None) -> list[T]:
    """Keep the first item per normalised title, preserving input order.

    Later duplicates are dropped even when they are more recent.
    Items whose key normalises to "" are dropped as well.
    """
    if key is None:
        key = lambda item: normalize_title(item.title)  # noqa: E731

    seen: set[str] = set()
    unique: list[T] = []
    for item in items:
        k = key(item)
        if not k or k in seen:
            continue
        seen.add(k)
        unique.append(item)
    return unique


def link_hash(link: str) -> str:
    """Stable identifier for the seen-link cache."""
    return hashlib.sha1(link.strip().encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Language heuristics
# ---------------------------------------------------------------------------

# (first, last) code points of each script block
_SCRIPT_RANGES: tuple[tuple[int, int, LanguageCategory], ...] = (
    (0x0B80, 0x0BFF, LanguageCategory.TAMIL),
    (0x0C00, 0x0C7F, LanguageCategory.TELUGU),
    (0x0C80, 0x0CFF, LanguageCategory.KANNADA),
    (0x0D00, 0x0D7F, LanguageCategory.MALAYALAM),
    (0x0900, 0x097F, LanguageCategory.HINDI),
    (0xAC00, 0xD7AF, LanguageCategory.KOREAN),
    (0x1100, 0x11FF, LanguageCategory.KOREAN),
)

_KEYWORDS: tuple[tuple[tuple[str, ...], LanguageCategory], ...] = (
    (("tamil", "kollywood"), LanguageCategory.TAMIL),
    (("telugu", "tollywood"), LanguageCategory.TELUGU),
    (("malayalam", "mollywood"), LanguageCategory.MALAYALAM),
    (("kannada", "sandalwood"), LanguageCategory.KANNADA),
    (("hindi", "bollywood"), LanguageCategory.HINDI),
    (("korean", "k-drama", "kdrama", "k-movie"), LanguageCategory.KOREAN),
    (("hollywood", "english"), LanguageCategory.ENGLISH),
)


def classify_language(
    title: str,
    snippet: str = "",
    default: LanguageCategory = LanguageCategory.MIXED,
) -> LanguageCategory:
    """Best-effort language guess for items from mixed feeds.

    Script ranges are checked first, then keywords. Returns ``default``
    when nothing matches.
    """
    text = f"{title} {snippet}"
    for ch in text:
        cp = ord(ch)
        if cp < 0x0900:
            continue
        for first, last, language in _SCRIPT_RANGES:
            if first <= cp <= last:
                return language

    lowered = text.lower()
    for words, language in _KEYWORDS:
        if any(re.search(rf"\b{re.escape(w)}\b", lowered) for w in words):
            return language
    return default
