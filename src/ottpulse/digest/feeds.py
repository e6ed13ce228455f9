"""RSS feed fetcher for the weekly digest.

Each source is fetched independently: a failing feed is logged and
contributes no items to the cycle.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import requests
from bs4 import BeautifulSoup

from ottpulse.digest import FeedSource, LanguageCategory, RawItem
from ottpulse.digest.normalize import Classifier, classify_language

logger = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "application/rss+xml,application/xml;q=0.9,text/html;q=0.8,*/*;q=0.5",
    "Accept-Language": "en-IN,en;q=0.9",
}

MAX_ATTEMPTS = 3
BACKOFF_SECONDS = 1.0
SNIPPET_MAX_CHARS = 1000


def _parse_date(raw: str, fallback: datetime) -> datetime:
    """Parse RFC 822 (RSS) or ISO 8601 (Atom) dates; naive dates are UTC."""
    raw = raw.strip()
    if not raw:
        return fallback
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _strip_html(text: str) -> str:
    if "<" not in text:
        return " ".join(text.split())
    return BeautifulSoup(text, "lxml").get_text(" ", strip=True)


def _child_text(node, *names: str) -> str:
    for name in names:
        el = node.find(name)
        if el is not None and el.text:
            return el.text.strip()
    return ""


def parse_feed(
    xml: str,
    source: FeedSource,
    max_items: int = 6,
    classifier: Classifier = classify_language,
) -> list[RawItem]:
    """Parse RSS ``<item>`` or Atom ``<entry>`` elements into RawItems."""
    soup = BeautifulSoup(xml, "xml")
    nodes = soup.find_all("item") or soup.find_all("entry")
    now = datetime.now(timezone.utc)

    items: list[RawItem] = []
    for node in nodes:
        title = _child_text(node, "title")
        if not title:
            continue

        link = _child_text(node, "link")
        if not link:
            # Atom: <link href="..."/>
            link_el = node.find("link")
            link = link_el.get("href", "") if link_el is not None else ""

        published = _parse_date(
            _child_text(node, "pubDate", "published", "updated", "date"), now
        )
        snippet = _strip_html(
            _child_text(node, "description", "summary", "encoded", "content")
        )[:SNIPPET_MAX_CHARS]

        language = source.language
        if language == LanguageCategory.MIXED:
            language = classifier(title, snippet, LanguageCategory.MIXED)

        items.append(
            RawItem(
                title=title,
                link=link.strip(),
                published_at=published,
                snippet=snippet,
                language=language,
            )
        )
        if len(items) >= max_items:
            break

    return items


def fetch_feed(
    source: FeedSource,
    max_items: int = 6,
    session: requests.Session | None = None,
) -> list[RawItem]:
    """Fetch and parse one feed (blocking I/O).

    Network errors are retried up to MAX_ATTEMPTS times with a doubling
    delay; the last error is re-raised.
    """
    http = session or requests
    delay = BACKOFF_SECONDS
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            resp = http.get(source.url, headers=_HEADERS, timeout=15)
            resp.raise_for_status()
            break
        except requests.RequestException as exc:
            if attempt == MAX_ATTEMPTS:
                raise
            logger.warning(
                "Feed %s attempt %d/%d failed (%s), retrying in %.0fs",
                source.url, attempt, MAX_ATTEMPTS, exc, delay,
            )
            time.sleep(delay)
            delay *= 2

    resp.encoding = resp.encoding or "utf-8"
    items = parse_feed(resp.text, source, max_items)
    logger.info("Fetched %d items from %s", len(items), source.url)
    return items


async def fetch_all(
    sources: list[FeedSource],
    max_items: int = 6,
    concurrency: int = 4,
    timeout: float | None = None,
) -> list[RawItem]:
    """Fetch every source concurrently, at most ``concurrency`` at a time.

    Results keep the configured source order. Fetches still pending when
    ``timeout`` expires are abandoned and whatever finished is returned.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _one(source: FeedSource) -> list[RawItem]:
        async with semaphore:
            return await asyncio.to_thread(fetch_feed, source, max_items)

    tasks = [asyncio.create_task(_one(s)) for s in sources]
    if not tasks:
        return []

    done, pending = await asyncio.wait(tasks, timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning(
            "Feed fetch budget exhausted: %d of %d sources abandoned",
            len(pending), len(tasks),
        )

    all_items: list[RawItem] = []
    for source, task in zip(sources, tasks):
        if task not in done:
            continue
        exc = task.exception()
        if exc is not None:
            logger.warning("Skipping feed %s: %s", source.url, exc)
            continue
        all_items.extend(task.result())
    return all_items
