#!/usr/bin/env python3
"""Build one digest and print it instead of sending it.

Nothing is written to the state file, so the same items show up again
on the next real cycle. Useful for checking feeds, prompts and layout.

Usage:
    python scripts/preview_digest.py
    python scripts/preview_digest.py --no-llm --no-articles
    python scripts/preview_digest.py --backfill
    python scripts/preview_digest.py --init-settings   # write config/settings.json
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from ottpulse.config import STATE_PATH
from ottpulse.digest.enricher import enrich_all
from ottpulse.digest.formatter import format_digest
from ottpulse.digest.job import DigestBroadcaster
from ottpulse.digest.settings import SETTINGS_PATH, DigestSettings
from ottpulse.main import build_provider
from ottpulse.store import StateStore

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


async def preview(args: argparse.Namespace) -> str:
    settings = DigestSettings.load(args.settings)
    if args.backfill:
        settings.backfill = True
    if args.no_articles:
        settings.fetch_articles = False

    store = StateStore.load(STATE_PATH, seen_cap=settings.seen_links_cap)
    provider = None if args.no_llm else build_provider()
    broadcaster = DigestBroadcaster(store, settings, provider, chat_id=0)

    fresh = await broadcaster.collect(settings.cycle_timeout_seconds)
    results = await enrich_all(
        fresh,
        provider,
        fetch_article=settings.fetch_articles,
        concurrency=settings.fetch_concurrency,
        timeout=settings.cycle_timeout_seconds,
    )
    for r in results:
        logger.info(
            "  %-60.60s %-9s score=%-4g%s",
            r.item.title,
            r.item.language.value,
            r.item.score,
            f" (degraded: {r.reason})" if r.degraded else "",
        )

    selection = await broadcaster.build([r.item for r in results], scanned=len(fresh))
    return format_digest(selection, settings.quotas(), tz_name=settings.timezone)


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--no-llm", action="store_true", help="skip LLM enrichment")
    parser.add_argument("--no-articles", action="store_true", help="use feed snippets only")
    parser.add_argument("--backfill", action="store_true", help="top up short groups")
    parser.add_argument("--settings", type=Path, default=None, help="settings JSON path")
    parser.add_argument(
        "--init-settings",
        action="store_true",
        help="write the effective settings to the settings file and exit",
    )
    args = parser.parse_args()

    if args.init_settings:
        path = args.settings or SETTINGS_PATH
        DigestSettings.load(path).save(path)
        logger.info("Settings written to %s", path)
        return

    text = asyncio.run(preview(args))
    print(text)
    logger.info("Digest length: %d chars", len(text))


if __name__ == "__main__":
    main()
