"""Scheduled job for the weekly OTT digest.

One cycle: fetch feeds -> dedupe -> drop seen links -> enrich -> select
-> critic review + summary -> format -> send to the group. Only one
cycle runs at a time; a trigger that fires while a cycle is in flight
is skipped.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum

from telegram.error import TelegramError
from telegram.ext import ContextTypes

from ottpulse.digest import DigestSelection, EnrichedItem, RawItem
from ottpulse.digest.enricher import enrich_all
from ottpulse.digest.feeds import fetch_all
from ottpulse.digest.formatter import format_digest
from ottpulse.digest.llm import LLMProvider, write_critic_review, write_weekly_summary
from ottpulse.digest.normalize import dedupe, link_hash
from ottpulse.digest.selector import select
from ottpulse.digest.settings import DigestSettings
from ottpulse.store import StateStore

logger = logging.getLogger(__name__)


class CycleState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


class DigestBroadcaster:
    """Runs digest cycles against one destination chat."""

    def __init__(
        self,
        store: StateStore,
        settings: DigestSettings,
        provider: LLMProvider | None,
        chat_id: int,
    ) -> None:
        self.store = store
        self.settings = settings
        self.provider = provider
        self.chat_id = chat_id
        self.state = CycleState.IDLE
        self.last_error = ""
        self._lock = asyncio.Lock()

    @property
    def destination(self) -> int:
        """The configured chat id; join events never redirect delivery."""
        return self.chat_id

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    async def collect(self, timeout: float | None) -> list[RawItem]:
        """Fetch, dedupe and drop links already processed in earlier cycles."""
        raw = await fetch_all(
            self.settings.sources(),
            max_items=self.settings.items_per_feed,
            concurrency=self.settings.fetch_concurrency,
            timeout=timeout,
        )
        unique = dedupe(raw)
        fresh = [i for i in unique if not self.store.is_processed(link_hash(i.link))]
        logger.info(
            "Collected %d items (%d unique, %d unseen)", len(raw), len(unique), len(fresh)
        )
        return fresh

    async def build(self, items: list[EnrichedItem], scanned: int) -> DigestSelection:
        selection = select(items, self.settings.quotas(), backfill=self.settings.backfill)
        if selection.title_of_week is not None:
            selection.review = await asyncio.to_thread(
                write_critic_review, self.provider, selection.title_of_week
            )
        selection.summary = await asyncio.to_thread(
            write_weekly_summary, self.provider, selection.all_picks(), scanned
        )
        return selection

    async def deliver(self, bot, text: str) -> bool:
        """Send the digest. Delivery failures are logged, never raised."""
        try:
            await bot.send_message(
                chat_id=self.destination,
                text=text,
                parse_mode="HTML",
                disable_web_page_preview=True,
            )
        except (TelegramError, asyncio.TimeoutError) as exc:
            logger.error("Failed to send digest to %s: %s", self.destination, exc)
            self.last_error = str(exc)
            return False
        logger.info("Digest sent to %s (%d chars)", self.destination, len(text))
        return True

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self, bot) -> bool:
        """Run one digest cycle. Returns True when the digest was delivered."""
        if self._lock.locked():
            logger.warning("Digest cycle already running, skipping trigger")
            return False

        async with self._lock:
            self.state = CycleState.RUNNING
            try:
                delivered = await self._run(bot)
            except Exception as exc:
                logger.exception("Digest cycle failed")
                self.state = CycleState.FAILED
                self.last_error = str(exc)
                return False
            self.state = CycleState.IDLE
            return delivered

    async def _run(self, bot) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.cycle_timeout_seconds

        def remaining() -> float:
            return max(0.0, deadline - loop.time())

        fresh = await self.collect(remaining())
        results = await enrich_all(
            fresh,
            self.provider,
            fetch_article=self.settings.fetch_articles,
            concurrency=self.settings.fetch_concurrency,
            timeout=remaining(),
        )
        degraded = sum(1 for r in results if r.degraded)
        if degraded:
            logger.info("%d of %d items enriched in degraded mode", degraded, len(results))

        items = [r.item for r in results]
        selection = await self.build(items, scanned=len(fresh))
        text = format_digest(
            selection, self.settings.quotas(), tz_name=self.settings.timezone
        )

        if not await self.deliver(bot, text):
            return False

        await self.store.mark_processed(link_hash(i.link) for i in items if i.link)
        await self.store.record_run(datetime.now(timezone.utc))
        self.last_error = ""
        return True


async def digest_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job callback: run one digest cycle with the broadcaster in job data."""
    broadcaster: DigestBroadcaster = context.job.data
    if not broadcaster.settings.schedule_enabled:
        return
    await broadcaster.run_cycle(context.bot)
