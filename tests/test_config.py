import json

import pytest

from ottpulse import config
from ottpulse.config import ConfigurationError, require_config
from ottpulse.digest import LanguageCategory, Quotas
from ottpulse.digest.settings import DEFAULT_FEEDS, DigestSettings


def test_missing_token_refuses_to_start(monkeypatch) -> None:
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", "")
    monkeypatch.setattr(config, "TELEGRAM_CHAT_ID", "-100")
    with pytest.raises(ConfigurationError, match="TELEGRAM_BOT_TOKEN"):
        require_config()


def test_non_numeric_chat_id_refuses_to_start(monkeypatch) -> None:
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setattr(config, "TELEGRAM_CHAT_ID", "@mygroup")
    with pytest.raises(ConfigurationError):
        require_config()


def test_valid_config(monkeypatch) -> None:
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setattr(config, "TELEGRAM_CHAT_ID", "-100200")
    assert require_config() == ("123:abc", -100200)


def test_resolve_llm_prefers_explicit_key(monkeypatch) -> None:
    monkeypatch.setattr(config, "LLM_API_KEY", "k1")
    monkeypatch.setattr(config, "LLM_PROVIDER", "anthropic")
    monkeypatch.setattr(config, "LLM_MODEL", "")
    assert config.resolve_llm() == ("anthropic", "k1", "")


def test_resolve_llm_nothing_configured(monkeypatch) -> None:
    monkeypatch.setattr(config, "LLM_API_KEY", "")
    monkeypatch.setattr(config, "LLM_PROVIDER", "")
    monkeypatch.setattr(config, "_PROVIDER_KEYS", {"openai": "", "anthropic": "", "google": ""})
    assert config.resolve_llm()[:2] == ("", "")


def test_settings_defaults_when_missing(tmp_path) -> None:
    settings = DigestSettings.load(tmp_path / "settings.json")
    assert settings.quotas() == Quotas(6, 4, 2)
    assert len(settings.sources()) == len(DEFAULT_FEEDS)
    assert settings.backfill is False


def test_settings_ignore_unknown_keys(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"korean_quota": 3, "bogus": 1}), encoding="utf-8")
    assert DigestSettings.load(path).korean_quota == 3


def test_settings_corrupt_file(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{oops", encoding="utf-8")
    assert DigestSettings.load(path) == DigestSettings()


def test_settings_round_trip(tmp_path) -> None:
    path = tmp_path / "cfg" / "settings.json"
    DigestSettings(interval_seconds=604800, backfill=True).save(path)
    loaded = DigestSettings.load(path)
    assert loaded.interval_seconds == 604800
    assert loaded.backfill is True


def test_unknown_feed_language_becomes_mixed() -> None:
    settings = DigestSettings(feeds=[
        {"url": "https://a.example/rss", "language": "Klingon"},
        {"url": "", "language": "Tamil"},
    ])
    sources = settings.sources()
    assert len(sources) == 1
    assert sources[0].language == LanguageCategory.MIXED
