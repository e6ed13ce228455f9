from datetime import datetime, timedelta, timezone

import pytest

from ottpulse.digest import EnrichedItem, LanguageCategory, RawItem
from ottpulse.digest.llm import LLMProvider

BASE_TIME = datetime(2025, 11, 3, 12, 0, tzinfo=timezone.utc)


class FakeProvider(LLMProvider):
    """Returns canned completions and records prompts."""

    name = "fake"

    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def complete(self, system, prompt, max_tokens=400, json_mode=False):
        self.calls.append((system, prompt))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeBot:
    """Stands in for telegram.Bot in delivery tests."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[dict] = []

    async def send_message(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.sent.append(kwargs)


def make_raw(
    title: str,
    language: LanguageCategory = LanguageCategory.TAMIL,
    hours_ago: int = 0,
    link: str | None = None,
    snippet: str = "snippet",
) -> RawItem:
    return RawItem(
        title=title,
        link=link or f"https://example.com/{title.lower().replace(' ', '-')}",
        published_at=BASE_TIME - timedelta(hours=hours_ago),
        snippet=snippet,
        language=language,
    )


def make_item(
    title: str,
    language: LanguageCategory = LanguageCategory.TAMIL,
    score: float = 5.0,
    hours_ago: int = 0,
) -> EnrichedItem:
    return EnrichedItem(
        title=title,
        link=f"https://example.com/{title.lower().replace(' ', '-')}",
        language=language,
        published_at=BASE_TIME - timedelta(hours=hours_ago),
        score=score,
    )


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state.json"
