# -----------------------------------------------------------------------------
# In-process model registry used by the LLM client.
#
# Logical aliases ("generator", "fast", ...) map to concrete provider model
# IDs plus default sampling parameters. Generation code asks for an alias
# (``settings.generator_model``) so the provider can be swapped here without
# touching the pipeline.
# -----------------------------------------------------------------------------
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENAI_BASE_URL = "https://api.openai.com/v1"


@dataclass(frozen=True, slots=True)
class ModelConfig:
    """Configuration for a single LLM model.

    Parameters
    ----------
    name:
        Provider-specific model identifier, e.g. ``"gemini-2.5-pro"``.
    provider:
        Logical provider name: ``"google"`` selects the Gemini
        ``generateContent`` protocol, anything else is treated as an
        OpenAI-compatible chat-completions endpoint.
    base_url:
        Default API base URL; per-provider environment variables override it.
    max_tokens:
        Default generation limit, overridable per request.
    temperature:
        Default sampling temperature, overridable per request.
    """

    name: str
    provider: str = "openai"
    base_url: str = OPENAI_BASE_URL
    max_tokens: int = 2048
    temperature: float = 0.5


MODEL_REGISTRY: dict[str, ModelConfig] = {
    # Summary generation over long lecture material: long context, JSON output.
    "generator": ModelConfig(
        name="gemini-2.5-pro",
        provider="google",
        base_url=GEMINI_BASE_URL,
        max_tokens=65536,
        temperature=0.3,
    ),
    # Cheaper Gemini profile for short inputs and manual experiments.
    "generator_flash": ModelConfig(
        name="gemini-2.5-flash",
        provider="google",
        base_url=GEMINI_BASE_URL,
        max_tokens=32768,
        temperature=0.3,
    ),
    "fast": ModelConfig(
        name="gpt-4o-mini",
        provider="openai",
        base_url=OPENAI_BASE_URL,
        max_tokens=4096,
        temperature=0.4,
    ),
    "balanced": ModelConfig(
        name="gpt-5.1",
        provider="openai",
        base_url=OPENAI_BASE_URL,
        max_tokens=16384,
        temperature=0.5,
    ),
}

#: Default logical alias used when callers do not explicitly choose a model.
DEFAULT_ALIAS: str = "generator"


def get_model(alias_or_name: str) -> ModelConfig:
    """Return a :class:`ModelConfig` for the given alias or model name.

    Registered aliases win. Anything else is treated as a concrete model ID;
    names starting with ``gemini`` are routed to Google, the rest to an
    OpenAI-compatible endpoint.
    """
    if alias_or_name in MODEL_REGISTRY:
        return MODEL_REGISTRY[alias_or_name]
    if alias_or_name.startswith("gemini"):
        return ModelConfig(name=alias_or_name, provider="google", base_url=GEMINI_BASE_URL)
    return ModelConfig(name=alias_or_name)


def all_models() -> Mapping[str, ModelConfig]:
    """Return a shallow copy of the registry."""
    return dict(MODEL_REGISTRY)


__all__ = ["ModelConfig", "MODEL_REGISTRY", "DEFAULT_ALIAS", "get_model", "all_models"]
