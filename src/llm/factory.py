"""LLM provider factory with auto-detection."""

import os
from typing import NamedTuple

from .base import LLMError, LLMProvider


class _ProviderInfo(NamedTuple):
    env_key: str
    key_prefix: str
    cheap_model: str


# Order matters: auto-detection tries these top to bottom, and "sk-ant-"
# must be checked before the broader "sk-" prefix.
_PROVIDERS = {
    "claude": _ProviderInfo("ANTHROPIC_API_KEY", "sk-ant-", "claude-haiku-4-5"),
    "openai": _ProviderInfo("OPENAI_API_KEY", "sk-", "gpt-4o-mini"),
}


def create_cheap_provider(
    provider: str | None = None,
    api_key: str | None = None,
    model: str | None = None,
    client=None,
) -> LLMProvider:
    """Provider on the cheap model tier, used for per-capture extraction."""
    resolved = _resolve(provider, api_key)
    info = _PROVIDERS.get(resolved)
    cheap_model = model or (info.cheap_model if info else None)
    return create_llm_provider(provider=resolved, api_key=api_key, model=cheap_model, client=client)


def create_llm_provider(
    provider: str | None = None,
    api_key: str | None = None,
    model: str | None = None,
    client=None,
) -> LLMProvider:
    """Create an LLM provider instance.

    Args:
        provider: "claude", "openai", "auto", or None (auto-detect)
        api_key: Explicit API key; falls back to the provider's env var
        model: Model name (None = provider default)
        client: Pre-built SDK client for tests

    Raises:
        LLMError: Unknown provider, or no key to auto-detect from.
    """
    resolved = _resolve(provider, api_key)
    if resolved not in _PROVIDERS:
        raise LLMError(f"Unknown provider: {resolved}. Use: {', '.join(_PROVIDERS)}")

    if not api_key and not client:
        api_key = os.getenv(_PROVIDERS[resolved].env_key)

    if resolved == "claude":
        from .providers.claude import ClaudeProvider

        return ClaudeProvider(api_key=api_key, model=model, client=client)

    from .providers.openai import OpenAIProvider

    return OpenAIProvider(api_key=api_key, model=model, client=client)


def _resolve(provider: str | None, api_key: str | None) -> str:
    if not provider or provider == "auto":
        return _auto_detect_provider(api_key)
    return provider


def _detect_provider_from_key(api_key: str) -> str | None:
    for name, info in _PROVIDERS.items():
        if api_key.startswith(info.key_prefix):
            return name
    return None


def _auto_detect_provider(api_key: str | None = None) -> str:
    """Detect provider from explicit key prefix, then env vars."""
    if api_key:
        inferred = _detect_provider_from_key(api_key)
        if inferred:
            return inferred

    for name, info in _PROVIDERS.items():
        if os.getenv(info.env_key):
            return name
    env_keys = ", ".join(info.env_key for info in _PROVIDERS.values())
    raise LLMError(f"No LLM API key found. Set one of: {env_keys}")
