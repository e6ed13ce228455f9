import asyncio
import json

from conftest import FakeBot, FakeProvider, make_raw
from telegram.error import NetworkError

from ottpulse.digest import LanguageCategory
from ottpulse.digest.job import CycleState, DigestBroadcaster, digest_job
from ottpulse.digest.normalize import link_hash
from ottpulse.digest.settings import DigestSettings
from ottpulse.store import StateStore

CHAT_ID = -1001234


def _raw_items():
    return [
        make_raw("Leo – Official Trailer", LanguageCategory.TAMIL, hours_ago=1),
        make_raw("Leo — First Look", LanguageCategory.TAMIL, hours_ago=0),
        make_raw("Dune Part Two", LanguageCategory.ENGLISH, hours_ago=3),
        make_raw("Squid Game", LanguageCategory.KOREAN, hours_ago=5),
    ]


def _broadcaster(state_path, monkeypatch, provider=None, raws=None) -> DigestBroadcaster:
    async def _fake_fetch_all(sources, max_items, concurrency, timeout):
        return list(raws if raws is not None else _raw_items())

    monkeypatch.setattr("ottpulse.digest.job.fetch_all", _fake_fetch_all)
    settings = DigestSettings(fetch_articles=False, cycle_timeout_seconds=5)
    store = StateStore.load(state_path)
    return DigestBroadcaster(store, settings, provider, CHAT_ID)


def test_cycle_sends_digest_and_marks_links(state_path, monkeypatch) -> None:
    broadcaster = _broadcaster(state_path, monkeypatch)
    bot = FakeBot()

    delivered = asyncio.run(broadcaster.run_cycle(bot))

    assert delivered
    assert broadcaster.state == CycleState.IDLE
    assert len(bot.sent) == 1
    sent = bot.sent[0]
    assert sent["chat_id"] == CHAT_ID
    assert sent["parse_mode"] == "HTML"
    text = sent["text"]
    # only the first of the two Leo items survives dedupe
    assert text.count("Leo") >= 1
    assert "First Look" not in text
    assert "Regional Picks (1/6)" in text
    assert "Not enough regional titles" in text

    data = json.loads(state_path.read_text(encoding="utf-8"))
    assert link_hash("https://example.com/dune-part-two") in data["seen_links"]
    assert len(data["seen_links"]) == 3
    assert data["last_run"]


def test_second_cycle_skips_seen_links(state_path, monkeypatch) -> None:
    broadcaster = _broadcaster(state_path, monkeypatch)
    bot = FakeBot()

    asyncio.run(broadcaster.run_cycle(bot))
    asyncio.run(broadcaster.run_cycle(bot))

    second = bot.sent[1]["text"]
    assert "Regional Picks (0/6)" in second
    assert "No pick available this week" in second


def test_delivery_failure_is_logged_not_raised(state_path, monkeypatch) -> None:
    broadcaster = _broadcaster(state_path, monkeypatch)

    delivered = asyncio.run(broadcaster.run_cycle(FakeBot(error=NetworkError("timed out"))))

    assert delivered is False
    assert broadcaster.state == CycleState.IDLE
    assert "timed out" in broadcaster.last_error
    assert len(broadcaster.store.seen) == 0
    assert broadcaster.store.last_run is None


def test_unexpected_error_marks_cycle_failed(state_path, monkeypatch) -> None:
    broadcaster = _broadcaster(state_path, monkeypatch)

    def _explode(*args, **kwargs):
        raise RuntimeError("bug")

    monkeypatch.setattr("ottpulse.digest.job.select", _explode)

    assert asyncio.run(broadcaster.run_cycle(FakeBot())) is False
    assert broadcaster.state == CycleState.FAILED
    assert broadcaster.last_error == "bug"


def test_overlapping_trigger_is_skipped(state_path, monkeypatch) -> None:
    broadcaster = _broadcaster(state_path, monkeypatch)
    bot = FakeBot()

    async def scenario() -> bool:
        async with broadcaster._lock:
            return await broadcaster.run_cycle(bot)

    assert asyncio.run(scenario()) is False
    assert bot.sent == []


def test_enriched_cycle_uses_scores_and_review(state_path, monkeypatch) -> None:
    provider = FakeProvider(reply='{"title": "Dune: Part Two", "score": 9, "genre": ["Sci-Fi"]}')
    broadcaster = _broadcaster(state_path, monkeypatch, provider=provider)
    bot = FakeBot()

    asyncio.run(broadcaster.run_cycle(bot))

    text = bot.sent[0]["text"]
    assert "Title of the Week" in text
    assert "No pick available" not in text
    assert "Dune: Part Two" in text


def test_stored_group_id_never_redirects_delivery(state_path, monkeypatch) -> None:
    broadcaster = _broadcaster(state_path, monkeypatch, raws=[])
    asyncio.run(broadcaster.store.set_group_id(-999))
    bot = FakeBot()

    asyncio.run(broadcaster.run_cycle(bot))

    assert bot.sent[0]["chat_id"] == CHAT_ID


class _Job:
    def __init__(self, data) -> None:
        self.data = data


class _Context:
    def __init__(self, broadcaster, bot) -> None:
        self.job = _Job(broadcaster)
        self.bot = bot


def test_digest_job_respects_schedule_flag(state_path, monkeypatch) -> None:
    broadcaster = _broadcaster(state_path, monkeypatch)
    broadcaster.settings.schedule_enabled = False
    bot = FakeBot()

    asyncio.run(digest_job(_Context(broadcaster, bot)))
    assert bot.sent == []

    broadcaster.settings.schedule_enabled = True
    asyncio.run(digest_job(_Context(broadcaster, bot)))
    assert len(bot.sent) == 1
