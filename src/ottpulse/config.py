import os

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(RuntimeError):
    """A required setting is missing; the bot must not start."""


TELEGRAM_BOT_TOKEN: str = os.environ.get("TELEGRAM_BOT_TOKEN", "")
TELEGRAM_CHAT_ID: str = os.environ.get("TELEGRAM_CHAT_ID", "")
ADMIN_ID: str = os.environ.get("ADMIN_ID", "")

# LLM (optional: without a key enrichment runs in degraded mode)
LLM_PROVIDER: str = os.environ.get("LLM_PROVIDER", "")  # openai | anthropic | google
LLM_MODEL: str = os.environ.get("LLM_MODEL", "")  # empty = provider default
LLM_API_KEY: str = os.environ.get("LLM_API_KEY", "")

# Per-provider API keys (any one is enough)
OPENAI_API_KEY: str = os.environ.get("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY: str = os.environ.get("ANTHROPIC_API_KEY", "")
GEMINI_API_KEY: str = os.environ.get("GEMINI_API_KEY", "")

# Map provider name → env var value
_PROVIDER_KEYS: dict[str, str] = {
    "openai": OPENAI_API_KEY,
    "anthropic": ANTHROPIC_API_KEY,
    "google": GEMINI_API_KEY,
}

STATE_PATH: str = os.environ.get("STATE_PATH", "data/state.json")
DASHBOARD_PORT: int = int(os.environ.get("DASHBOARD_PORT", os.environ.get("PORT", "3000")))

WELCOME_MESSAGE: str = os.environ.get("WELCOME_MESSAGE", "") or (
    "🎉 Welcome to OTT Pulse India!\n\n"
    "You're in the official channel for weekly AI-curated OTT updates across "
    "Tamil, Telugu, Malayalam, Kannada, Hindi, English & Korean.\n\n"
    "What's here:\n"
    "• Weekly curated OTT Digest (Top 12: 6 regional, 4 English, 2 Korean)\n"
    "• Title of the Week with a short critic review\n"
    "• Summary of the week & top headlines\n\n"
    "Powered by MsquareDigitalhub.com"
)


def require_config() -> tuple[str, int]:
    """Return (bot token, chat id) or raise ConfigurationError."""
    missing = [
        name
        for name, value in (
            ("TELEGRAM_BOT_TOKEN", TELEGRAM_BOT_TOKEN),
            ("TELEGRAM_CHAT_ID", TELEGRAM_CHAT_ID),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Missing required environment: {', '.join(missing)}")
    try:
        chat_id = int(TELEGRAM_CHAT_ID)
    except ValueError as exc:
        raise ConfigurationError(
            f"TELEGRAM_CHAT_ID must be numeric, got {TELEGRAM_CHAT_ID!r}"
        ) from exc
    return TELEGRAM_BOT_TOKEN, chat_id


def admin_id() -> int | None:
    return int(ADMIN_ID) if ADMIN_ID.lstrip("-").isdigit() else None


def resolve_llm() -> tuple[str, str, str]:
    """Resolve the best available LLM provider, API key, and model.

    Priority:
    1. LLM_API_KEY + LLM_PROVIDER env vars (explicit single-provider config)
    2. Per-provider env vars (OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY)

    Returns (provider, api_key, model). All empty strings if nothing configured.
    """
    if LLM_API_KEY:
        return LLM_PROVIDER or "openai", LLM_API_KEY, LLM_MODEL

    if LLM_PROVIDER and _PROVIDER_KEYS.get(LLM_PROVIDER):
        return LLM_PROVIDER, _PROVIDER_KEYS[LLM_PROVIDER], LLM_MODEL

    for prov, key in _PROVIDER_KEYS.items():
        if key:
            return prov, key, LLM_MODEL

    return "", "", LLM_MODEL
