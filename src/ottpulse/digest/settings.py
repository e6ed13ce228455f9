"""Digest settings — persisted as JSON in config/settings.json."""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path

from ottpulse.digest import FeedSource, LanguageCategory, Quotas

logger = logging.getLogger(__name__)

SETTINGS_PATH = Path("config/settings.json")

_FILMIBEAT = "https://www.filmibeat.com/rss/feeds"

DEFAULT_FEEDS: list[dict[str, str]] = [
    {"url": f"{_FILMIBEAT}/bollywood-fb.xml", "language": "Hindi"},
    {"url": f"{_FILMIBEAT}/tamil-fb.xml", "language": "Tamil"},
    {"url": f"{_FILMIBEAT}/tamil-reviews-fb.xml", "language": "Tamil"},
    {"url": f"{_FILMIBEAT}/telugu-fb.xml", "language": "Telugu"},
    {"url": f"{_FILMIBEAT}/kannada-fb.xml", "language": "Kannada"},
    {"url": f"{_FILMIBEAT}/malayalam-fb.xml", "language": "Malayalam"},
    {"url": f"{_FILMIBEAT}/english-hollywood-fb.xml", "language": "English"},
    {"url": f"{_FILMIBEAT}/english-latest-web-series-fb.xml", "language": "English"},
    {"url": f"{_FILMIBEAT}/korean-fb.xml", "language": "Korean"},
    {"url": f"{_FILMIBEAT}/ott-fb.xml", "language": "Mixed"},
    {"url": f"{_FILMIBEAT}/filmibeat-fb.xml", "language": "Mixed"},
]


@dataclass
class DigestSettings:
    """All configurable digest parameters."""

    feeds: list[dict[str, str]] = field(default_factory=lambda: list(DEFAULT_FEEDS))

    # Quotas per digest group
    regional_quota: int = 6
    international_quota: int = 4
    korean_quota: int = 2
    # Top up short groups from the general pool instead of showing a notice only
    backfill: bool = False

    # Schedule (120s is the testing cadence; production runs weekly)
    schedule_enabled: bool = True
    interval_seconds: int = 120
    first_run_seconds: int = 10

    # Fetching / enrichment
    items_per_feed: int = 6
    fetch_concurrency: int = 4
    fetch_articles: bool = True
    cycle_timeout_seconds: float = 300.0

    seen_links_cap: int = 500
    timezone: str = "Asia/Kolkata"

    def sources(self) -> list[FeedSource]:
        """Configured feeds; entries with an unknown language become Mixed."""
        out: list[FeedSource] = []
        for feed in self.feeds:
            url = feed.get("url", "")
            if not url:
                continue
            try:
                language = LanguageCategory(feed.get("language", "Mixed"))
            except ValueError:
                logger.warning("Unknown language %r for %s", feed.get("language"), url)
                language = LanguageCategory.MIXED
            out.append(FeedSource(url=url, language=language))
        return out

    def quotas(self) -> Quotas:
        return Quotas(
            regional=self.regional_quota,
            international=self.international_quota,
            korean=self.korean_quota,
        )

    @classmethod
    def load(cls, path: Path | None = None) -> "DigestSettings":
        """Load from JSON file. Returns defaults if file doesn't exist."""
        path = path or SETTINGS_PATH
        if not path.exists():
            return cls()
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            # Only accept known fields
            known = {k for k in cls.__dataclass_fields__}
            filtered = {k: v for k, v in raw.items() if k in known}
            return cls(**filtered)
        except (json.JSONDecodeError, TypeError, AttributeError):
            logger.warning("Corrupt settings file, using defaults")
            return cls()

    def save(self, path: Path | None = None) -> None:
        """Persist to JSON file."""
        path = path or SETTINGS_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(asdict(self), ensure_ascii=False, indent=2) + "\n",
            encoding="utf-8",
        )
