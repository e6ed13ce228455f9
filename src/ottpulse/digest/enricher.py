"""Turns raw feed items into scored EnrichedItems.

Enrichment never raises: every failure produces a degraded item that
keeps the feed title and snippet with a score of 0.
"""

import asyncio
import logging

import requests

from ottpulse.digest import EnrichedItem, EnrichmentResult, RawItem
from ottpulse.digest.article import fetch_article_text
from ottpulse.digest.llm import LLMProvider, extract_movie_info

logger = logging.getLogger(__name__)


def degraded_item(raw: RawItem) -> EnrichedItem:
    """Fallback item built only from feed data."""
    return EnrichedItem(
        title=raw.title,
        link=raw.link,
        language=raw.language,
        published_at=raw.published_at,
        synopsis=raw.snippet,
        score=0.0,
    )


def enrich_item(
    raw: RawItem,
    provider: LLMProvider | None,
    fetch_article: bool = True,
) -> EnrichmentResult:
    """Fetch the article and extract metadata for one item (blocking I/O)."""
    if provider is None:
        return EnrichmentResult(degraded_item(raw), degraded=True, reason="disabled")

    article_text = ""
    if fetch_article and raw.link:
        try:
            article_text = fetch_article_text(raw.link)
        except requests.RequestException as exc:
            logger.warning("Article unavailable for %s: %s", raw.link, exc)
        except Exception:
            logger.exception("Article extraction failed for %s", raw.link)

    try:
        data = extract_movie_info(provider, raw, article_text)
    except Exception as exc:
        logger.warning("Extraction failed for %r: %s", raw.title, exc)
        return EnrichmentResult(degraded_item(raw), degraded=True, reason=str(exc))

    item = EnrichedItem(
        title=data["title"] or raw.title,
        link=raw.link,
        language=raw.language,
        published_at=raw.published_at,
        cast=data["cast"],
        director=data["director"],
        genre=data["genre"],
        synopsis=data["synopsis"] or raw.snippet,
        score=data["score"],
    )
    return EnrichmentResult(item)


async def enrich_all(
    items: list[RawItem],
    provider: LLMProvider | None,
    fetch_article: bool = True,
    concurrency: int = 4,
    timeout: float | None = None,
) -> list[EnrichmentResult]:
    """Enrich ``items`` concurrently; order is preserved.

    Items still pending when ``timeout`` expires come back degraded.
    """
    if not items:
        return []

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _one(raw: RawItem) -> EnrichmentResult:
        async with semaphore:
            return await asyncio.to_thread(enrich_item, raw, provider, fetch_article)

    tasks = [asyncio.create_task(_one(raw)) for raw in items]
    done, pending = await asyncio.wait(tasks, timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning(
            "Enrichment budget exhausted: %d of %d items left unenriched",
            len(pending), len(tasks),
        )

    results: list[EnrichmentResult] = []
    for raw, task in zip(items, tasks):
        if task in done and task.exception() is None:
            results.append(task.result())
        else:
            reason = "timeout" if task not in done else str(task.exception())
            results.append(EnrichmentResult(degraded_item(raw), degraded=True, reason=reason))
    return results
