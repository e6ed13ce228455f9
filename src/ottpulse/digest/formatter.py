"""Telegram message formatting for the weekly digest."""

import re
from datetime import datetime
from html import escape
from zoneinfo import ZoneInfo

from ottpulse.digest import DigestGroup, DigestSelection, EnrichedItem, Quotas

# Telegram HTML message limit
MAX_MESSAGE_LEN = 4096

SYNOPSIS_MAX = 180
HEADLINE_MAX = 120
SUMMARY_MAX = 600
REVIEW_MAX = 400
MAX_CAST_SHOWN = 4

FOOTER = "Powered by MsquareDigitalhub.com"

_GROUP_HEADER = {
    DigestGroup.REGIONAL: ("🇮🇳", "Regional Picks"),
    DigestGroup.INTERNATIONAL: ("🌍", "English Picks"),
    DigestGroup.KOREAN: ("🇰🇷", "Korean Picks"),
}

_GROUP_NOUN = {
    DigestGroup.REGIONAL: "regional",
    DigestGroup.INTERNATIONAL: "English",
    DigestGroup.KOREAN: "Korean",
}

# C0/C1 control characters except tab and newline
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")


def clean(text: str, limit: int | None = None) -> str:
    """Strip control characters, collapse whitespace, truncate, then escape."""
    text = " ".join(_CONTROL_CHARS.sub("", text or "").split())
    if limit is not None and len(text) > limit:
        text = text[: limit - 1].rstrip() + "…"
    return escape(text)


def _safe_link(link: str) -> str:
    """Escaped href for http(s) links; anything else is dropped."""
    link = _CONTROL_CHARS.sub("", link or "").strip()
    if not link.lower().startswith(("http://", "https://")):
        return ""
    return escape(link, quote=True)


def _format_pick(index: int, item: EnrichedItem) -> list[str]:
    lines = [f"{index}. <b>{clean(item.title)}</b> ({clean(item.language.value)})"]
    if item.cast:
        lines.append(f"   👥 {clean(', '.join(item.cast[:MAX_CAST_SHOWN]))}")
    if item.director:
        lines.append(f"   🎬 {clean(item.director)}")
    if item.genre:
        lines.append(f"   🏷 {clean(', '.join(item.genre))}")
    if item.synopsis:
        lines.append(f"   📝 {clean(item.synopsis, SYNOPSIS_MAX)}")
    href = _safe_link(item.link)
    if href:
        lines.append(f'   🔗 <a href="{href}">Read more</a>')
    lines.append("")
    return lines


def _format_group(
    group: DigestGroup, selection: DigestSelection, quotas: Quotas
) -> list[str]:
    emoji, label = _GROUP_HEADER[group]
    picks = selection.picks(group)
    quota = quotas.for_group(group)
    lines = [f"{emoji} <b>{label} ({len(picks)}/{quota})</b>"]
    if selection.shortfall(group, quotas):
        lines.append(
            f"<i>Not enough {_GROUP_NOUN[group]} titles this week worth "
            f"recommending ({len(picks)} of {quota}).</i>"
        )
        if not picks:
            lines.append("")
    for i, item in enumerate(picks, 1):
        lines.extend(_format_pick(i, item))
    return lines


def _fit(text: str) -> str:
    """Cut at a line boundary so no tag is left open."""
    if len(text) <= MAX_MESSAGE_LEN:
        return text
    cut = text.rfind("\n", 0, MAX_MESSAGE_LEN)
    if cut <= 0:
        cut = MAX_MESSAGE_LEN
    return text[:cut].rstrip()


def format_digest(
    selection: DigestSelection,
    quotas: Quotas = Quotas(),
    now: datetime | None = None,
    tz_name: str = "Asia/Kolkata",
) -> str:
    """Render a DigestSelection as one Telegram HTML message."""
    now = now or datetime.now(ZoneInfo(tz_name))
    lines = [
        "🎬 <b>WEEKLY OTT DIGEST</b>",
        f"📅 {now.strftime('%a, %d %b %Y %H:%M')}",
        "",
    ]

    for group in DigestGroup:
        lines.extend(_format_group(group, selection, quotas))

    top = selection.title_of_week
    if top is not None:
        lines.append(
            f"🎖 <b>Title of the Week</b>: <b>{clean(top.title)}</b> "
            f"({clean(top.language.value)})"
        )
        if selection.review:
            lines.append(f"📝 <i>{clean(selection.review, REVIEW_MAX)}</i>")
    else:
        lines.append("🎖 <b>Title of the Week</b>: <i>No pick available this week.</i>")
    lines.append("")

    if selection.summary:
        lines.append("🧠 <b>Summary of the Week</b>")
        lines.append(clean(selection.summary, SUMMARY_MAX))
        lines.append("")

    if selection.headlines:
        lines.append("📰 <b>Top Headlines</b>")
        for i, headline in enumerate(selection.headlines, 1):
            lines.append(f"{i}. {clean(headline, HEADLINE_MAX)}")
        lines.append("")

    lines.append(FOOTER)
    return _fit("\n".join(lines))
