"""Ranks enriched items into the fixed-shape weekly selection."""

import logging
from datetime import datetime, timezone

from ottpulse.digest import DigestGroup, DigestSelection, EnrichedItem, Quotas
from ottpulse.digest.llm import coerce_score
from ottpulse.digest.normalize import dedupe

logger = logging.getLogger(__name__)

MAX_HEADLINES = 5

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _published(item: EnrichedItem) -> datetime:
    ts = item.published_at
    if ts is None:
        return _EPOCH
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def rank_key(item: EnrichedItem) -> tuple[float, datetime]:
    """Score first, recency breaks ties."""
    return (coerce_score(item.score), _published(item))


def rank(items: list[EnrichedItem]) -> list[EnrichedItem]:
    return sorted(items, key=rank_key, reverse=True)


def select(
    items: list[EnrichedItem],
    quotas: Quotas = Quotas(),
    backfill: bool = False,
) -> DigestSelection:
    """Pick up to ``quotas`` items per group plus the title of the week.

    A title (by normalised key) is never picked for two groups. Groups
    short of their quota stay short unless ``backfill`` is set, in which
    case they are topped up from the remaining ranked pool.
    """
    for item in items:
        item.score = coerce_score(item.score)

    selection = DigestSelection()
    taken: set[str] = set()

    partitions: dict[DigestGroup, list[EnrichedItem]] = {g: [] for g in DigestGroup}
    for item in items:
        if item.group is not None:
            partitions[item.group].append(item)

    for group in DigestGroup:
        picks = selection.picks(group)
        for item in rank(partitions[group]):
            if len(picks) >= quotas.for_group(group):
                break
            if not item.key or item.key in taken:
                continue
            picks.append(item)
            taken.add(item.key)

    if backfill:
        pool = rank([i for i in items if i.key and i.key not in taken])
        for group in DigestGroup:
            picks = selection.picks(group)
            while len(picks) < quotas.for_group(group) and pool:
                item = pool.pop(0)
                if item.key in taken:
                    continue
                picks.append(item)
                taken.add(item.key)
                selection.backfilled = True

    all_picks = selection.all_picks()
    if all_picks:
        selection.title_of_week = max(all_picks, key=rank_key)

    recent = sorted(items, key=_published, reverse=True)
    selection.headlines = [i.title for i in dedupe(recent)][:MAX_HEADLINES]

    logger.info(
        "Selected %d regional, %d international, %d korean (from %d items)",
        len(selection.regional),
        len(selection.international),
        len(selection.korean),
        len(items),
    )
    return selection
