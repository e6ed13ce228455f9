"""Weekly OTT digest — data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class LanguageCategory(str, Enum):
    """Language a feed (or item) is filed under."""

    TAMIL = "Tamil"
    TELUGU = "Telugu"
    MALAYALAM = "Malayalam"
    KANNADA = "Kannada"
    HINDI = "Hindi"
    ENGLISH = "English"
    KOREAN = "Korean"
    MIXED = "Mixed"


class DigestGroup(str, Enum):
    """Quota bucket of the weekly digest."""

    REGIONAL = "regional"
    INTERNATIONAL = "international"
    KOREAN = "korean"


REGIONAL_LANGUAGES = frozenset({
    LanguageCategory.TAMIL,
    LanguageCategory.TELUGU,
    LanguageCategory.MALAYALAM,
    LanguageCategory.KANNADA,
    LanguageCategory.HINDI,
})


def group_for(language: LanguageCategory) -> DigestGroup | None:
    """Map a language to its digest group. Mixed has no group."""
    if language in REGIONAL_LANGUAGES:
        return DigestGroup.REGIONAL
    if language == LanguageCategory.ENGLISH:
        return DigestGroup.INTERNATIONAL
    if language == LanguageCategory.KOREAN:
        return DigestGroup.KOREAN
    return None


@dataclass(frozen=True)
class FeedSource:
    """A configured RSS feed."""

    url: str
    language: LanguageCategory = LanguageCategory.MIXED


@dataclass
class RawItem:
    """One item read from a feed."""

    title: str
    link: str
    published_at: datetime
    snippet: str = ""
    language: LanguageCategory = LanguageCategory.MIXED

    def to_llm_text(self, article_text: str = "") -> str:
        """Format for LLM input."""
        body = article_text or self.snippet
        return f"Title: {self.title}\nURL: {self.link}\nSnippet/Article: {body}"


@dataclass
class EnrichedItem:
    """A feed item with extracted movie metadata and a relevance score."""

    title: str
    link: str
    language: LanguageCategory
    published_at: datetime
    cast: list[str] = field(default_factory=list)
    director: str = ""
    genre: list[str] = field(default_factory=list)
    synopsis: str = ""
    score: float = 0.0

    @property
    def key(self) -> str:
        from ottpulse.digest.normalize import normalize_title

        return normalize_title(self.title)

    @property
    def group(self) -> DigestGroup | None:
        return group_for(self.language)


@dataclass
class EnrichmentResult:
    """Enricher output. ``degraded`` is True when the fallback path was used."""

    item: EnrichedItem
    degraded: bool = False
    reason: str = ""


@dataclass(frozen=True)
class Quotas:
    """Target pick count per digest group."""

    regional: int = 6
    international: int = 4
    korean: int = 2

    def for_group(self, group: DigestGroup) -> int:
        return getattr(self, group.value)


@dataclass
class DigestSelection:
    """Complete output of one selection pass. Never persisted."""

    regional: list[EnrichedItem] = field(default_factory=list)
    international: list[EnrichedItem] = field(default_factory=list)
    korean: list[EnrichedItem] = field(default_factory=list)
    title_of_week: EnrichedItem | None = None
    review: str = ""
    summary: str = ""
    headlines: list[str] = field(default_factory=list)
    backfilled: bool = False

    def picks(self, group: DigestGroup) -> list[EnrichedItem]:
        return getattr(self, group.value)

    def all_picks(self) -> list[EnrichedItem]:
        return [*self.regional, *self.international, *self.korean]

    def shortfall(self, group: DigestGroup, quotas: Quotas) -> int:
        """How many picks ``group`` is missing from its quota."""
        return max(0, quotas.for_group(group) - len(self.picks(group)))
