"""Map provider names to configured adapters."""

from __future__ import annotations

from typing import Any

import httpx

from ..config import ProviderOverride
from .anthropic import AnthropicProvider
from .base import DEFAULT_TIMEOUT_SECONDS, ModelFilter, Provider, ProviderConfig
from .gemini import GeminiProvider
from .ollama import DEFAULT_OLLAMA_HOST, OllamaProvider
from .openai_compatible import OpenAICompatibleProvider

OPENAI_BASE_URL = "https://api.openai.com/v1"
GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEEPSEEK_BASE_URL = "https://api.deepseek.com"
ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"

KNOWN_PROVIDERS = ("openai", "groq", "deepseek", "anthropic", "gemini", "ollama")


def _keep_gpt(model: str) -> bool:
    return model.startswith("gpt")


def _drop_whisper(model: str) -> bool:
    return "whisper" not in model.lower()


_DEFAULTS: dict[str, dict[str, Any]] = {
    "openai": {"base_url": OPENAI_BASE_URL, "model_filter": _keep_gpt},
    "groq": {"base_url": GROQ_BASE_URL, "model_filter": _drop_whisper},
    "deepseek": {
        "base_url": DEEPSEEK_BASE_URL,
        "model_filter": _drop_whisper,
        "headers": {"Accept": "application/json"},
        "extra_params": {"stream": False},
    },
    "anthropic": {"base_url": ANTHROPIC_BASE_URL},
    "gemini": {},
    "ollama": {"base_url": DEFAULT_OLLAMA_HOST},
}


def requires_credential(name: str) -> bool:
    """Only the local Ollama daemon works without an API key."""
    return name.strip().lower() != "ollama"


def provider_config(
    name: str,
    credential: str = "",
    override: ProviderOverride | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> ProviderConfig:
    """Build the adapter configuration for ``name`` with user overrides applied."""
    normalized = name.strip().lower()
    defaults = _DEFAULTS.get(normalized, _DEFAULTS["openai"])
    model_filter: ModelFilter | None = defaults.get("model_filter")
    headers = dict(defaults.get("headers", {}))
    extra_params = dict(defaults.get("extra_params", {}))
    base_url = defaults.get("base_url", "")
    if override is not None:
        base_url = override.base_url or base_url
        headers.update(override.headers)
        extra_params.update(override.extra_params)
    return ProviderConfig(
        name=normalized,
        credential=credential,
        base_url=base_url,
        model_filter=model_filter,
        headers=headers,
        extra_params=extra_params,
        timeout=timeout,
    )


def build_provider(
    name: str,
    credential: str = "",
    override: ProviderOverride | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    client: Any | None = None,
) -> Provider:
    """Return the adapter for ``name``.

    Unknown names are treated as OpenAI-compatible against the OpenAI base
    URL. ``transport`` reaches the httpx-backed adapters and ``client`` the
    SDK-backed ones (Gemini, Ollama).
    """
    config = provider_config(name, credential, override, timeout)
    if config.name == "anthropic":
        return AnthropicProvider(config, transport=transport)
    if config.name == "gemini":
        return GeminiProvider(config, client=client)
    if config.name == "ollama":
        return OllamaProvider(config, client=client)
    return OpenAICompatibleProvider(config, transport=transport)


class ProviderPool:
    """Lazily build and cache one adapter per provider name and timeout.

    Adapters are rebuilt when the stored credential changes, so a key edited
    in the settings takes effect on the next turn.
    """

    def __init__(
        self,
        credentials: dict[str, str],
        overrides: dict[str, ProviderOverride] | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sdk_clients: dict[str, Any] | None = None,
    ) -> None:
        self._credentials = credentials
        self._overrides = overrides or {}
        self._timeout = timeout
        self._transport = transport
        self._sdk_clients = sdk_clients or {}
        self._adapters: dict[str, Provider] = {}

    def credential(self, name: str) -> str:
        return self._credentials.get(name.strip().lower(), "")

    def get(self, name: str, timeout: float | None = None) -> Provider:
        normalized = name.strip().lower()
        effective_timeout = timeout or self._timeout
        key = f"{normalized}@{effective_timeout:g}"
        credential = self.credential(normalized)
        adapter = self._adapters.get(key)
        if adapter is None or adapter.credential != credential:
            adapter = build_provider(
                normalized,
                credential,
                self._overrides.get(normalized),
                effective_timeout,
                transport=self._transport,
                client=self._sdk_clients.get(normalized),
            )
            self._adapters[key] = adapter
        return adapter

    async def aclose(self) -> None:
        adapters = list(self._adapters.values())
        self._adapters.clear()
        for adapter in adapters:
            await adapter.aclose()
