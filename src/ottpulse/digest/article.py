"""Best-effort article body extraction."""

import logging

import requests
from bs4 import BeautifulSoup

from ottpulse.digest.feeds import _HEADERS

logger = logging.getLogger(__name__)

# Tried in order; the first one with enough text wins.
ARTICLE_SELECTORS = ("article", ".article-content", ".content", ".story", "#article-body")
MIN_SELECTOR_CHARS = 120
MAX_ARTICLE_CHARS = 30000


def extract_main_text(html: str, max_chars: int = MAX_ARTICLE_CHARS) -> str:
    """Pull the main body text out of an article page."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    for selector in ARTICLE_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        text = " ".join(el.get_text(" ").split())
        if len(text) > MIN_SELECTOR_CHARS:
            return text[:max_chars]

    body = soup.body or soup
    return " ".join(body.get_text(" ").split())[:max_chars]


def fetch_article_text(url: str, max_chars: int = MAX_ARTICLE_CHARS) -> str:
    """Fetch ``url`` and return its main text (blocking I/O).

    Raises ``requests.RequestException`` on network or HTTP errors.
    """
    resp = requests.get(url, headers=_HEADERS, timeout=15)
    resp.raise_for_status()
    resp.encoding = resp.apparent_encoding or "utf-8"
    return extract_main_text(resp.text, max_chars)
