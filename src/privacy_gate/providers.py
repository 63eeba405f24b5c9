"""Model registry — which models exist and which provider serves them.

The provider set is closed (``Provider`` enum).  Anything keyed by
provider is checked at import time to cover every member, so an unknown
provider can't surface at request time.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"

    @property
    def api_key_env(self) -> str:
        return _API_KEY_ENV[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_API_KEY_ENV = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
    Provider.GOOGLE: "GOOGLE_AI_API_KEY",
}

_DISPLAY_NAMES = {
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.GOOGLE: "Google",
}

for _table in (_API_KEY_ENV, _DISPLAY_NAMES):
    if set(_table) != set(Provider):
        raise RuntimeError("provider table out of sync with Provider")


class UnknownModelError(KeyError):
    """Model id not in the registry."""


@dataclass(frozen=True, slots=True)
class ModelConfig:
    id: str
    provider_id: str            # id the provider's API expects
    name: str
    description: str
    provider: Provider
    supports_thinking: bool
    supports_web_search: bool
    max_tokens: int
    context_window: int


def _m(id, provider_id, name, description, provider, thinking, max_tokens, context_window):
    return ModelConfig(
        id=id, provider_id=provider_id, name=name, description=description,
        provider=provider, supports_thinking=thinking, supports_web_search=True,
        max_tokens=max_tokens, context_window=context_window,
    )


MODELS: dict[str, ModelConfig] = {m.id: m for m in (
    _m("gpt-4o", "gpt-4o", "GPT-4o", "Fastest, multimodal",
       Provider.OPENAI, False, 4096, 128_000),
    _m("gpt-4-turbo", "gpt-4-turbo", "GPT-4 Turbo", "Powerful, cost-effective",
       Provider.OPENAI, False, 4096, 128_000),
    _m("o1", "o1", "O1", "Advanced reasoning",
       Provider.OPENAI, True, 100_000, 200_000),
    _m("claude-opus-4", "claude-opus-4-20250514", "Claude Opus 4", "Most capable",
       Provider.ANTHROPIC, True, 8192, 200_000),
    _m("claude-sonnet-4", "claude-sonnet-4-20250514", "Claude Sonnet 4", "Balanced",
       Provider.ANTHROPIC, True, 8192, 200_000),
    _m("claude-haiku-3.5", "claude-3-5-haiku-20241022", "Claude Haiku 3.5", "Fast & efficient",
       Provider.ANTHROPIC, False, 8192, 200_000),
    _m("gemini-2-flash", "gemini-2.0-flash-exp", "Gemini 2.0 Flash", "Cutting edge",
       Provider.GOOGLE, True, 8192, 1_000_000),
    _m("gemini-1.5-pro", "gemini-1.5-pro", "Gemini 1.5 Pro", "Long context",
       Provider.GOOGLE, False, 8192, 2_000_000),
    _m("gemini-1.5-flash", "gemini-1.5-flash", "Gemini 1.5 Flash", "Speed optimized",
       Provider.GOOGLE, False, 8192, 1_000_000),
)}

DEFAULT_MODEL = "claude-sonnet-4"


def is_valid_model_id(model_id: str) -> bool:
    return model_id in MODELS


def get_model_config(model_id: str) -> ModelConfig:
    try:
        return MODELS[model_id]
    except KeyError:
        raise UnknownModelError(model_id) from None


def default_model() -> ModelConfig:
    return MODELS[DEFAULT_MODEL]


def models_by_provider() -> dict[Provider, list[ModelConfig]]:
    """Registry grouped by provider, every provider present."""
    groups: dict[Provider, list[ModelConfig]] = {p: [] for p in Provider}
    for m in MODELS.values():
        groups[m.provider].append(m)
    return groups
