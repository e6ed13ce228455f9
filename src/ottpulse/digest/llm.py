"""LLM integration for metadata extraction and digest copy.

Supports OpenAI, Anthropic, and Google Gemini. Providers only expose a
plain text completion; the digest-specific prompts and the parsing of
model output live in the module-level functions below.
"""

import json
import logging
import math
from abc import ABC, abstractmethod

from ottpulse.digest import EnrichedItem, RawItem

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = """\
You extract movie/web-series metadata from an entertainment news article.
Return ONLY a JSON object with exactly these fields:
title, cast (array of up to 5 names), director, genre (array),
synopsis (1-2 sentences), score (0-10, how worth watching it looks).
If unsure, use empty strings/arrays and a low score."""

CRITIC_SYSTEM_PROMPT = "You are an international film critic."

CRITIC_PROMPT_TEMPLATE = """\
Write an honest, spoiler-free, 50-word review of "{title}" in the tone of a \
respected international critic. Single paragraph, end with a one-sentence verdict.
Known details: {details}"""

SUMMARY_SYSTEM_PROMPT = "You write short weekly OTT trend summaries for India."

SUMMARY_PROMPT_TEMPLATE = """\
Summarise this week's OTT picks: trends, language performance and notable \
releases. Keep it under 80 words, plain text.
Picks:
{picks}"""

MAX_CAST = 5
MAX_REVIEW_WORDS = 55

_SCHEMA_DEFAULTS: dict[str, object] = {
    "title": "",
    "cast": [],
    "director": "",
    "genre": [],
    "synopsis": "",
    "score": 0.0,
}


class ExtractionError(ValueError):
    """Model output could not be turned into the extraction schema."""


def coerce_score(value: object) -> float:
    """Clamp a model-provided score into [0, 10]; anything invalid becomes 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0.0
    if not isinstance(value, (int, float)):
        return 0.0
    score = float(value)
    if math.isnan(score) or score < 0 or score > 10:
        return 0.0
    return score


def _str_list(value: object) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def parse_extraction(raw: str) -> dict:
    """Parse model output into the extraction schema.

    Accepts bare JSON or JSON embedded in prose: decoding starts at the
    first ``{``. Unknown fields are dropped, missing ones defaulted.
    """
    start = raw.find("{") if raw else -1
    if start < 0:
        raise ExtractionError("no JSON object in model output")
    try:
        data, _ = json.JSONDecoder().raw_decode(raw[start:])
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"invalid JSON in model output: {exc}") from exc
    if not isinstance(data, dict):
        raise ExtractionError("model output is not a JSON object")

    result = dict(_SCHEMA_DEFAULTS)
    title = data.get("title")
    result["title"] = title.strip() if isinstance(title, str) else ""
    result["cast"] = _str_list(data.get("cast"))[:MAX_CAST]
    director = data.get("director")
    result["director"] = director.strip() if isinstance(director, str) else ""
    result["genre"] = _str_list(data.get("genre"))
    synopsis = data.get("synopsis")
    result["synopsis"] = synopsis.strip() if isinstance(synopsis, str) else ""
    result["score"] = coerce_score(data.get("score"))
    return result


# ---------------------------------------------------------------------------
# Provider interface
# ---------------------------------------------------------------------------


class LLMProvider(ABC):
    """Abstract LLM provider."""

    name = ""

    @abstractmethod
    def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int = 400,
        json_mode: bool = False,
    ) -> str:
        ...


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, api_key: str, model: str = "") -> None:
        import openai

        self.client = openai.OpenAI(api_key=api_key)
        self.model = model or "gpt-4o-mini"

    def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int = 400,
        json_mode: bool = False,
    ) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=0.1 if json_mode else 0.45,
            max_tokens=max_tokens,
            **kwargs,
        )
        return response.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def __init__(self, api_key: str, model: str = "") -> None:
        import anthropic

        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model or "claude-3-5-haiku-latest"

    def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int = 400,
        json_mode: bool = False,
    ) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text


# ---------------------------------------------------------------------------
# Google Gemini
# ---------------------------------------------------------------------------


class GoogleProvider(LLMProvider):
    name = "google"

    def __init__(self, api_key: str, model: str = "") -> None:
        from google import genai

        self.client = genai.Client(api_key=api_key)
        self.model = model or "gemini-2.0-flash"

    def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int = 400,
        json_mode: bool = False,
    ) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=f"{system}\n\n{prompt}",
        )
        return response.text or ""


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GoogleProvider,
}


def get_provider(provider_name: str, api_key: str, model: str = "") -> LLMProvider:
    """Create an LLM provider by name."""
    cls = _PROVIDERS.get(provider_name)
    if cls is None:
        raise ValueError(
            f"Unknown LLM provider: {provider_name!r}. "
            f"Choose from: {', '.join(_PROVIDERS)}"
        )
    return cls(api_key, model=model)


# ---------------------------------------------------------------------------
# Digest operations
# ---------------------------------------------------------------------------


def extract_movie_info(
    provider: LLMProvider, item: RawItem, article_text: str = ""
) -> dict:
    """Ask the model for structured metadata. Raises on any failure."""
    raw = provider.complete(
        EXTRACTION_SYSTEM_PROMPT,
        item.to_llm_text(article_text[:4000]),
        max_tokens=400,
        json_mode=True,
    )
    return parse_extraction(raw)


def fallback_review(item: EnrichedItem) -> str:
    genre = item.genre[0] if item.genre else "New release"
    text = f"{genre}: {item.synopsis or 'An interesting new release.'}"
    return text[:250]


def write_critic_review(provider: LLMProvider | None, item: EnrichedItem) -> str:
    """~50-word critic review of the title of the week (never raises)."""
    if provider is None:
        return fallback_review(item)
    details = json.dumps(
        {
            "language": item.language.value,
            "cast": item.cast,
            "director": item.director,
            "genre": item.genre,
            "synopsis": item.synopsis,
        },
        ensure_ascii=False,
    )
    try:
        text = provider.complete(
            CRITIC_SYSTEM_PROMPT,
            CRITIC_PROMPT_TEMPLATE.format(title=item.title, details=details),
            max_tokens=120,
        )
    except Exception:
        logger.exception("Critic review generation failed for %s", item.title)
        return fallback_review(item)
    words = text.split()
    if not words:
        return fallback_review(item)
    return " ".join(words[:MAX_REVIEW_WORDS])


def fallback_summary(picks: list[EnrichedItem], scanned: int) -> str:
    languages: list[str] = []
    for item in picks:
        if item.language.value not in languages:
            languages.append(item.language.value)
    summary = f"{scanned} candidate items scanned, {len(picks)} picked."
    if languages:
        summary += f" Top languages: {', '.join(languages[:5])}."
    return summary


def write_weekly_summary(
    provider: LLMProvider | None, picks: list[EnrichedItem], scanned: int
) -> str:
    """Short paragraph on the week's picks (never raises)."""
    if provider is None or not picks:
        return fallback_summary(picks, scanned)
    lines = [
        f"- {p.title} ({p.language.value}, score {p.score:g}) {', '.join(p.genre)}"
        for p in picks
    ]
    try:
        text = provider.complete(
            SUMMARY_SYSTEM_PROMPT,
            SUMMARY_PROMPT_TEMPLATE.format(picks="\n".join(lines)),
            max_tokens=200,
        )
    except Exception:
        logger.exception("Weekly summary generation failed")
        return fallback_summary(picks, scanned)
    return text.strip() or fallback_summary(picks, scanned)
